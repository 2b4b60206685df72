"""Code generator for a small robotics language that emits LLVM-style textual IR."""

__version__ = "0.1.0"

__all__ = ["__version__"]