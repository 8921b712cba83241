"""Infrastructure layer: path resolution, codecs, compression, file I/O.

This layer wraps third-party libraries (platformdirs, ruamel.yaml, msgpack,
bson, tomli-w). It must never import from services.
"""
