"""Listing clients for concrete remote services.

Adapters are imported explicitly, e.g.
``from drivetreelib.aio.adapters.drive import DriveListingClient``, because
each one pulls in its own optional dependencies.
"""
