import logging

from fastapi import Request

from imageshare.core.api_response import get_request_id


def log_business_event(
    logger: logging.Logger,
    request: Request | None,
    *,
    event: str,
    **fields,
) -> None:
    chunks = [f"event={event}", f"request_id={get_request_id(request)}"]
    for key, value in fields.items():
        if value is None:
            continue
        chunks.append(f"{key}={value}")
    logger.info("business_event %s", " ".join(chunks))
