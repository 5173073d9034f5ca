import httpx
import math
import logging

from carbon_credit.errors import OracleUnavailable

logger = logging.getLogger(__name__)


class YieldPredictionClient:
    """Client for the yield-prediction oracle that estimates a claim's token award"""

    def __init__(self, url: str, timeout: float = 10.0,
                 transport: httpx.AsyncBaseTransport = None):
        self.url = url
        self.timeout = timeout
        self.transport = transport

    async def predict(self, latitude: int, longitude: int, area: int, year: int) -> int:
        """Return the predicted yield as whole, non-negative tokens

        Raises OracleUnavailable on transport errors, non-2xx answers and bodies
        without a usable numeric prediction.
        """
        payload = {
            "latitude": latitude,
            "longitude": longitude,
            "area": area,
            "year": year
        }
        logger.info(f"Requesting yield prediction: {payload}")

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(self.url, json=payload)
        except httpx.HTTPError as e:
            logger.error(f"Prediction oracle unreachable: {e}")
            raise OracleUnavailable(f"Prediction oracle unreachable: {e}") from e

        if not response.is_success:
            logger.error(f"Prediction oracle answered {response.status_code}: {response.text}")
            raise OracleUnavailable(f"Prediction oracle answered {response.status_code}")

        try:
            prediction = float(response.json()["prediction"])
        except (ValueError, KeyError, TypeError) as e:
            logger.error(f"Unusable oracle response: {response.text}")
            raise OracleUnavailable(f"Unusable oracle response: {e}") from e

        if not math.isfinite(prediction):
            raise OracleUnavailable(f"Oracle returned a non-finite prediction: {prediction}")

        # Fractional tokens are not representable on the ledger
        tokens = max(0, math.floor(prediction))
        logger.info(f"Oracle predicted {prediction}, usable estimate {tokens} tokens")
        return tokens
