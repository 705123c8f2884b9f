import httpx
import logging

logger = logging.getLogger(__name__)

CANNOT_CONNECT_MESSAGE = "Cannot connect to sales tax rate service"
CANNOT_READ_MESSAGE = "Cannot read response from sales tax rate service"
NO_RATE_MESSAGE = "The zip code in the order does not have a corresponding sales tax rate."


class RateServiceError(Exception):
    """Base for every failure of a rate lookup; carries the HTTP status to answer with."""
    status_code = 500
    message = CANNOT_CONNECT_MESSAGE

    def __init__(self, message: str | None = None):
        if message is not None:
            self.message = message
        super().__init__(self.message)


class RateServiceUnavailable(RateServiceError):
    status_code = 500
    message = CANNOT_CONNECT_MESSAGE


class RateServiceReadError(RateServiceError):
    status_code = 500
    message = CANNOT_READ_MESSAGE


class RateNotFound(RateServiceError):
    status_code = 400
    message = NO_RATE_MESSAGE


class RateLookupClient:
    """
    Asks the sales tax rate service for the rate of a zip code.

    The zip is POSTed as the raw request body and the response body is
    returned as text. The downstream status code is not checked: whatever
    the service answers is handed to the rate parser.
    """

    def __init__(self, url: str, timeout: float, transport: httpx.AsyncBaseTransport | None = None):
        self.url = url
        self.timeout = timeout
        self._transport = transport

    async def fetch_rate_text(self, zip_code: str) -> str:
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            try:
                response = await client.send(
                    client.build_request("POST", self.url, content=zip_code.encode("utf-8")),
                    stream=True,
                )
            except httpx.RequestError as e:
                logger.error(f"Could not connect to sales tax rate service ({self.url}) for zip {zip_code!r}: {e!r}")
                raise RateServiceUnavailable() from e

            try:
                await response.aread()
                body_text = response.text
            except httpx.TimeoutException as e:
                # A stalled body counts as an unreachable service
                logger.error(f"Timed out reading from sales tax rate service ({self.url}) for zip {zip_code!r}: {e!r}")
                raise RateServiceUnavailable() from e
            except (httpx.RequestError, httpx.StreamError) as e:
                logger.error(f"Could not read sales tax rate service response for zip {zip_code!r}: {e!r}")
                raise RateServiceReadError() from e
            finally:
                await response.aclose()

        if response.is_error:
            logger.warning(f"Sales tax rate service returned status {response.status_code} for zip {zip_code!r}. Response: {body_text[:500]}")
        logger.debug(f"Rate service answered {body_text!r} for zip {zip_code!r}")
        return body_text
