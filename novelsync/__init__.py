"""novelsync core package.

Modules:
- plugins: content source contract, snapshot models and registry
- gateway: plugin lookup, URL resolution and typed fetch errors
- reconciler: pure chapter diffing
- repository: SQLModel data access for novels and chapters
- updates: novel / page / library synchronization
- covers: cover art caching
- downloads: chapter auto-download
- storage: file cache and key-value cache services
- config: INI parsing and config object
"""

__version__ = "0.1.0"
