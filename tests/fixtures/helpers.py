"""
Small assertion helpers shared by service, API and task tests.
"""
from io import BytesIO
from unittest.mock import MagicMock


def queued_payloads(dispatch_mock: MagicMock) -> list[dict]:
    """Flatten every payload passed to dispatch_notifications.delay."""
    payloads = []
    for call in dispatch_mock.call_args_list:
        payloads.extend(call.args[0])
    return payloads


def pdf_file(name: str = "proposal.pdf", body: bytes = b"%PDF-1.4 test document") -> tuple[str, BytesIO, str]:
    """Multipart file tuple as httpx expects it."""
    return (name, BytesIO(body), "application/pdf")
