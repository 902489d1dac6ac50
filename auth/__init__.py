"""auth/ -- Authentication and authorization package for the storefront.

Layer rule: auth/ imports only stdlib, third-party libraries, core/ and cache/.
It does NOT import from api/ or shop/.
api/ imports from auth/, not the other way around.
"""
