# --- Store ---


class StoreError(Exception):
    "Error in connection with the event store"


# --- Engine ---


class EngineError(Exception):
    """
    Raised for errors in the reconciliation engine that indicate misuse rather than bad input.
    """
