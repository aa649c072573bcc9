"""Order reference generation utilities."""

import uuid

ORDER_PREFIX = "order_"


def generate_order_id() -> str:
    """Generate a merchant-visible order reference.

    Returns:
        str: Reference like 'order_3f2a9c...' (32 hex characters)
    """
    return f"{ORDER_PREFIX}{uuid.uuid4().hex}"

