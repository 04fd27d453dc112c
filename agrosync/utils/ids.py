import uuid


def generate_id() -> str:
    """Locally unique record identifier."""
    return uuid.uuid4().hex
