"""VSL platform core: gesture inference pipeline and dictionary index synchronization."""
