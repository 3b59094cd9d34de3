"""
Gateways.

Collaborators the stores use to reach the notes service:
- base.py: AuthGateway, NotesGateway and CredentialStore interfaces
- client.py: httpx-based APIClient returning GatewayResult envelopes
- http_auth.py / http_notes.py: REST implementations
- memory.py: in-process demo implementations
"""
