import json

import httpx
import pytest

from examvault.exceptions import UpstreamUnavailableError
from examvault.services.content_store import PinataContentStore

GATEWAYS = ["https://gw-one.test", "https://gw-two.test/"]


def make_store(handler):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return PinataContentStore(client, "test-jwt", "https://api.pinata.test/", GATEWAYS, timeout=1)


async def test_publish_pins_json():
    seen = {}

    def handler(request: httpx.Request):
        seen["url"] = str(request.url)
        seen["auth"] = request.headers["Authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"IpfsHash": "bafyhash", "PinSize": 10})

    store = make_store(handler)
    envelope = {"iv": "aXY=", "encryptedData": "ZGF0YQ==", "timestamp": 1, "version": "1.0"}
    handle = await store.publish(envelope, name="exam_1")

    assert handle == "bafyhash"
    assert seen["url"] == "https://api.pinata.test/pinning/pinJSONToIPFS"
    assert seen["auth"] == "Bearer test-jwt"
    assert seen["body"]["pinataContent"] == envelope
    assert seen["body"]["pinataOptions"] == {"cidVersion": 1}
    assert seen["body"]["pinataMetadata"]["name"] == "exam_1"
    assert seen["body"]["pinataMetadata"]["keyvalues"]["type"] == "encrypted_exam"


@pytest.mark.parametrize("response", [
    httpx.Response(500, text="boom"),
    httpx.Response(401, json={"error": "unauthorized"}),
    httpx.Response(200, json={"PinSize": 10}),
    httpx.Response(200, text="not json"),
])
async def test_publish_failures(response):
    store = make_store(lambda request: response)
    with pytest.raises(UpstreamUnavailableError):
        await store.publish({"iv": "x"})


async def test_publish_network_error():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(UpstreamUnavailableError):
        await make_store(handler).publish({"iv": "x"})


async def test_fetch_falls_back_to_next_gateway():
    requested = []

    def handler(request: httpx.Request):
        requested.append(str(request.url))
        if request.url.host == "gw-one.test":
            return httpx.Response(504)
        return httpx.Response(200, json={"iv": "aXY=", "encryptedData": "ZGF0YQ=="})

    store = make_store(handler)
    data = await store.fetch(" bafyhash ")

    assert data == {"iv": "aXY=", "encryptedData": "ZGF0YQ=="}
    assert requested == ["https://gw-one.test/ipfs/bafyhash", "https://gw-two.test/ipfs/bafyhash"]


async def test_fetch_skips_non_json_gateway_response():
    def handler(request: httpx.Request):
        if request.url.host == "gw-one.test":
            return httpx.Response(200, text="<html>rate limited</html>")
        return httpx.Response(200, json={"ok": True})

    assert await make_store(handler).fetch("bafyhash") == {"ok": True}


async def test_fetch_all_gateways_down():
    store = make_store(lambda request: httpx.Response(503))
    with pytest.raises(UpstreamUnavailableError):
        await store.fetch("bafyhash")
