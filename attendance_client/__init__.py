"""Teacher attendance client library.

Keep package import lightweight; import heavy submodules explicitly where needed.
"""

__version__ = "1.0.0"
__all__ = [
	"app",
	"client",
	"auth",
	"models",
	"exceptions",
]
