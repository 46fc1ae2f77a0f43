"""Client-side identifier generation."""

import uuid


def new_client_id() -> str:
    """Return a new client id (UUID4 string).

    Client ids are assigned on the device before any server contact and are
    the de-duplication key for sync.
    """
    return str(uuid.uuid4())
