import httpx
import pytest
import respx

from reviewdigest.services.robots import RobotsPolicyEvaluator, is_path_disallowed

POLICY = """User-agent: *
Disallow:
disallow: /gp/cart
Disallow: /product-reviews/private
"""


@pytest.mark.parametrize(
    "path, expected",
    [
        ("/gp/cart/view", True),
        ("/product-reviews/private/1", True),
        ("/product-reviews/B01", False),
        ("/", False),
    ],
)
def test_prefix_rules(path, expected):
    assert is_path_disallowed(POLICY, path) is expected


def test_slash_rule_blocks_everything_but_root():
    policy = "User-agent: *\nDisallow: /\n"

    assert is_path_disallowed(policy, "/dp/1")
    assert not is_path_disallowed(policy, "/")
    assert not is_path_disallowed(policy, "")


def test_empty_policy_allows():
    assert not is_path_disallowed("", "/anything")


@respx.mock
async def test_evaluate_disallowed():
    respx.get("https://shop.example/robots.txt").mock(return_value=httpx.Response(200, text=POLICY))

    decision = await RobotsPolicyEvaluator().evaluate("https://shop.example/gp/cart?x=1")

    assert decision.fetched_ok
    assert decision.disallowed
    assert decision.snippet.startswith("User-agent")


@respx.mock
async def test_evaluate_allowed():
    respx.get("https://shop.example/robots.txt").mock(return_value=httpx.Response(200, text=POLICY))

    decision = await RobotsPolicyEvaluator().evaluate("https://shop.example/product-reviews/B01")

    assert decision.fetched_ok
    assert not decision.disallowed


@respx.mock
async def test_non_success_status_fails_open():
    respx.get("https://shop.example/robots.txt").mock(return_value=httpx.Response(404))

    decision = await RobotsPolicyEvaluator().evaluate("https://shop.example/dp/1")

    assert not decision.fetched_ok
    assert not decision.disallowed
    assert decision.error_message == "robots.txt status 404"


@respx.mock
async def test_transport_error_fails_open():
    respx.get("https://shop.example/robots.txt").mock(side_effect=httpx.ConnectError("refused"))

    decision = await RobotsPolicyEvaluator().evaluate("https://shop.example/dp/1")

    assert not decision.fetched_ok
    assert not decision.disallowed
    assert "refused" in decision.error_message


async def test_non_http_url():
    decision = await RobotsPolicyEvaluator().evaluate("file:///tmp/page.html")

    assert not decision.fetched_ok
