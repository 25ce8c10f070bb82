"""CMS backend: content search synchronization service."""
