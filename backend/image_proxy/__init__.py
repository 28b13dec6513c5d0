"""
Image Proxy Module

Serves Cardano asset images (CIP25, CIP26 registry, CIP68) from a
CDN-backed image store, materializing them on first request.

Features:
- Cache check before any chain lookup
- Image resolution across CIP68 labels and CIP25 metadata
- Embedded (base64), HTTP and IPFS sources
- Passthrough for originals above the CDN upload limit
- Every resolution failure answered with a cacheable 404

Submodules are imported directly (`image_proxy.pipeline`,
`image_proxy.routes_fastapi`); the error and config modules are shared
with the metadata, store and lookup packages.
"""
