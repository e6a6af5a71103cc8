"""
RentHive - Contract Analysis
Sends a rental contract's text to OpenAI's chat completions API and
parses the structured JSON it returns.
"""

import json
import logging
import re
from typing import Optional

import httpx

from renthive.core.config import get_settings
from renthive.core.errors import ExternalServiceError
from renthive.services.text_extraction import detect_extension, extract_text

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are an expert in rental contracts and tenant rights. Your job is to analyze rental "
    "agreements and identify key information and potential issues for tenants."
)

USER_PROMPT = """
Analyze this rental contract/lease agreement and extract key information.
Also identify any potential issues, unfair terms, or areas that could be problematic for the tenant.

Here is the contract text:
{text}

Please structure your response in JSON format with the following fields:
- contractType: The type of rental agreement
- parties: Object with landlord and tenant information, each containing name and address fields
- propertyDetails: Object with address and postcode
- terms: Object with startDate, endDate, rentAmount, depositAmount, and paymentDue
- specialClauses: Array of any notable or special clauses
- issues: Array of potential issues, unfair terms or areas of concern for the tenant
"""

FENCE_RE = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```")


def default_analysis() -> dict:
    """Placeholder result used when the model's answer is not valid JSON."""
    return {
        "contractType": "Unknown Contract Type",
        "parties": {
            "landlord": {
                "name": "Could not extract landlord information",
                "address": "Could not extract landlord address",
            },
            "tenant": {
                "name": "Could not extract tenant information",
                "address": "Could not extract tenant address",
            },
        },
        "propertyDetails": {
            "address": "Could not extract address",
            "postcode": "Could not extract postcode",
        },
        "terms": {
            "startDate": "Unknown",
            "endDate": "Unknown",
            "rentAmount": "Unknown",
            "depositAmount": "Unknown",
            "paymentDue": "Unknown",
        },
        "specialClauses": ["Could not extract special clauses"],
        "issues": ["Error processing contract", "Please try again or contact support"],
    }


def parse_analysis(content: str) -> dict:
    """Parse the model output, unwrapping a markdown code fence if present."""
    content = content.strip()
    match = FENCE_RE.search(content)
    text = match.group(1) if match else content
    try:
        analysis = json.loads(text)
    except ValueError:
        logger.error("Could not parse contract analysis as JSON: %.500s", content)
        return default_analysis()
    if not isinstance(analysis, dict):
        return default_analysis()
    return analysis


class ContractAnalyzer:
    """OpenAI client for rental contract analysis."""

    def __init__(self):
        settings = get_settings()
        self.api_key = settings.openai_api_key
        self.api_url = settings.openai_api_url
        self.model = settings.openai_model
        self.timeout = settings.openai_timeout_seconds

    @property
    def is_available(self) -> bool:
        return bool(self.api_key)

    async def _complete(self, prompt: str) -> str:
        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            "max_tokens": 4000,
            "temperature": 0.2,
        }
        headers = {"Authorization": f"Bearer {self.api_key}", "Content-Type": "application/json"}

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(self.api_url, headers=headers, json=payload)
        except httpx.HTTPError as e:
            logger.error("OpenAI request failed: %s", e)
            raise ExternalServiceError(f"OpenAI API request failed: {e}") from e

        if response.status_code != 200:
            logger.error("OpenAI API error %s: %s", response.status_code, response.text)
            raise ExternalServiceError(f"OpenAI API request failed: {response.reason_phrase}")

        try:
            return response.json()["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise ExternalServiceError("Invalid response format from OpenAI API") from e

    async def analyze(self, data: bytes, extension: Optional[str] = None, filename: str = "document") -> dict:
        """
        Extract the contract's text and ask the model for a structured summary.

        When no extension is known it is guessed from the file signature.
        """
        if not self.is_available:
            raise ExternalServiceError("OpenAI API key is required for contract analysis")

        extension = extension or detect_extension(data)
        text = extract_text(data, extension, filename)
        logger.info("Analyzing contract %s (%d characters)", filename, len(text))
        content = await self._complete(USER_PROMPT.format(text=text))
        return parse_analysis(content)


async def analyze_contract(data: bytes, extension: Optional[str] = None, filename: str = "document") -> dict:
    return await ContractAnalyzer().analyze(data, extension, filename)
