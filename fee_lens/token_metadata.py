"""
Token Metadata — decode NonfungiblePositionManager.tokenURI()
==============================================================

tokenURI(tokenId) returns a self-describing data URI:

    data:application/json;base64,<base64(JSON)>

The JSON carries name, description and an ``image`` field that is itself a
data URI (``data:image/svg+xml;base64,…``) rendering the position card.
Ref: https://github.com/Uniswap/v3-periphery/blob/main/contracts/libraries/NFTDescriptor.sol
"""

import base64
import binascii
import json

JSON_DATA_URI_PREFIX = "data:application/json;base64,"


def decode_token_uri(uri: str) -> dict:
    """Decode a base64 JSON data URI into a dict.

    Accepts the standard and URL-safe base64 alphabets, with or without
    padding.

    Raises:
        ValueError: wrong prefix, bad base64, or the payload is not a JSON object.
    """
    if not uri.startswith(JSON_DATA_URI_PREFIX):
        raise ValueError("Token URI is not a base64 JSON data URI")
    encoded = uri[len(JSON_DATA_URI_PREFIX):].strip()
    encoded = encoded.replace("-", "+").replace("_", "/")
    encoded += "=" * (-len(encoded) % 4)
    try:
        raw = base64.b64decode(encoded, validate=True)
    except binascii.Error as e:
        raise ValueError(f"Token URI is not valid base64: {e}") from e
    try:
        doc = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ValueError(f"Token URI payload is not valid JSON: {e}") from e
    if not isinstance(doc, dict):
        raise ValueError("Token URI payload is not a JSON object")
    return doc


def extract_image(uri: str) -> str:
    """The ``image`` field of a token URI (usually an SVG data URI)."""
    doc = decode_token_uri(uri)
    image = doc.get("image")
    if not isinstance(image, str) or not image:
        raise ValueError("Token metadata has no image")
    return image
