"""
Notes Sync Client.

- core/: Configuration, logging, error taxonomy, shared utilities
- models/: Wire models exchanged with the notes service (pydantic)
- gateways/: Auth and notes gateways (HTTP via httpx, in-memory demo)
- stores/: Session and collection state stores with change notification
- cli/: Interactive shell (Rich) driving the stores
"""

__version__ = "1.0.0"
