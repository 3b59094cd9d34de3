"""
Stores.

Client-side state owners published to presentation code:
- channel.py: subscriber notification channel
- validators.py: credential form validators
- session.py: Session Store (who is logged in)
- collection.py: Collection Store (paginated, filterable note list)

Modules are imported directly; this package exports nothing so that the
gateway interfaces can depend on the channel without an import cycle.
"""
