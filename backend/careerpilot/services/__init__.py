"""Service layer: use cases orchestrating repositories and ports.

Import concrete services from their subpackages (``careerpilot.services.auth``);
this package stays import-light because the models depend on the ports.
"""
