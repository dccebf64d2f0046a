"""clide - Edit .csproj project descriptors and .sln solution files."""

__version__ = "0.1.0"
