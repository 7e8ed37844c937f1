from sitelens.config import DEFAULT_USER_AGENT
from sitelens.errors import FetchFailed
from sitelens.policy import PolicyGate, evaluate_policy, parse_robots_txt, robots_allows

ROBOTS_URL = "https://example.com/robots.txt"


def test_wildcard_disallow_all_blocks():
    assert robots_allows("User-agent: *\nDisallow: /\n") is False
    assert robots_allows("User-agent: *\nDisallow: /*\n") is False


def test_partial_disallow_is_allowed():
    assert robots_allows("User-agent: *\nDisallow: /admin\nDisallow: /cart\n") is True
    assert robots_allows("User-agent: *\nDisallow:\n") is True


def test_mixed_case_without_trailing_newline():
    assert robots_allows("USER-AGENT: *\nDISALLOW: /") is False


def test_byte_order_mark_does_not_hide_rules():
    assert robots_allows("\ufeffUser-agent: *\nDisallow: /\n") is False
    assert parse_robots_txt("\ufeffUser-agent: *\nDisallow: /private\n")[0].agents == ["*"]


def test_allow_root_reopens_the_site():
    assert robots_allows("User-agent: *\nDisallow: /\nAllow: /\n") is True


def test_specific_group_takes_priority_over_wildcard():
    robots = "User-agent: *\nDisallow: /\n\nUser-agent: SiteLensBot\nDisallow:\n"
    assert robots_allows(robots, DEFAULT_USER_AGENT) is True
    assert robots_allows(robots, "OtherBot/1.0") is False

    blocked = "User-agent: *\nDisallow:\n\nUser-agent: sitelensbot\nDisallow: /\n"
    assert robots_allows(blocked, DEFAULT_USER_AGENT) is False


def test_comments_and_grouped_agents():
    robots = "# staging\nUser-agent: a\nUser-agent: b  # second\nDisallow: /   # everything\n"
    groups = parse_robots_txt(robots)
    assert len(groups) == 1
    assert groups[0].agents == ["a", "b"]
    assert groups[0].blocks_entire_site() is True


def test_missing_robots_and_terms_allow_scraping(fake_fetcher):
    fetch = fake_fetcher()
    policy = PolicyGate(fetch).evaluate("https://example.com/some/page")

    assert policy.robots_txt_allowed is True
    assert policy.robots_txt_checked is True
    assert policy.terms_of_service_restricted is False
    assert policy.terms_checked is True
    assert policy.scraping_prohibited is False
    assert ROBOTS_URL in fetch.calls
    assert "https://example.com/terms" in fetch.calls


def test_robots_disallow_is_reported(fake_fetcher):
    fetch = fake_fetcher(pages={ROBOTS_URL: "User-agent: *\nDisallow: /"})
    policy = evaluate_policy("https://example.com/", fetch)

    assert policy.scraping_prohibited is True
    assert policy.prohibition_reason == "robots"
    assert policy.robots_txt_content == "User-agent: *\nDisallow: /"
    assert "robots_txt_content" not in policy.to_dict()


def test_terms_page_restriction(fake_fetcher):
    fetch = fake_fetcher(
        pages={"https://example.com/tos": "<html><body><p>No scraping of this site.</p></body></html>"}
    )
    policy = evaluate_policy("https://example.com/", fetch)

    assert policy.robots_txt_allowed is True
    assert policy.terms_of_service_restricted is True
    assert policy.terms_url == "https://example.com/tos"
    assert policy.matched_term == "no scraping"
    assert policy.prohibition_reason == "terms"


def test_unreachable_robots_fails_open(fake_fetcher):
    fetch = fake_fetcher(errors={ROBOTS_URL: FetchFailed(ROBOTS_URL, timed_out=True)})
    policy = evaluate_policy("https://example.com/", fetch)

    assert policy.robots_txt_allowed is True
    assert policy.robots_txt_checked is False
    assert policy.scraping_prohibited is False


def test_unreachable_robots_blocks_when_fail_closed(fake_fetcher):
    fetch = fake_fetcher(errors={ROBOTS_URL: FetchFailed(ROBOTS_URL)})
    policy = evaluate_policy("https://example.com/", fetch, fail_open=False)

    assert policy.robots_txt_allowed is False
    assert policy.scraping_prohibited is True
    assert policy.prohibition_reason == "robots"
