"""brewsync — converge installed Homebrew/npm packages to a desired state."""

__version__ = "0.1.0"
