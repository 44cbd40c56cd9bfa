"""stubpack.

A small build utility that appends an application payload, an options box and a
virtual filesystem prelude to a base executable stub, producing one
self-contained executable file.
"""

__all__: list[str] = ["__version__"]

__version__: str = "0.1.0"
