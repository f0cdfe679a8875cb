import httpx


class BackendError(Exception):
    """The backing store did not accept an operation."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


def raise_for_error(response: httpx.Response) -> None:
    if response.is_success:
        return
    try:
        message = response.json().get("error") or response.reason_phrase
    except ValueError:
        message = response.text or response.reason_phrase
    raise BackendError(message, status_code=response.status_code)
