# tests/test_browser.py
"""
Page-side behaviour checked in headless Chromium.

Deselect with `-m "not browser"` where no browser is installed; when Chromium
cannot be launched the tests are skipped.
"""

import asyncio

import pytest
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import async_playwright

from voiceui.executor import ActionExecutor
from voiceui.locator import Locator
from voiceui.matcher import IntentMatcher
from voiceui.models import ActionKind

pytestmark = pytest.mark.browser


def run_in_page(html, scenario):
    """Load html into a fresh headless page and run the async scenario on it."""

    async def main():
        async with async_playwright() as p:
            try:
                browser = await p.chromium.launch(headless=True)
            except PlaywrightError as e:
                return False, str(e)
            try:
                page = await browser.new_page()
                await page.set_content(html)
                return True, await scenario(page)
            finally:
                await browser.close()

    launched, result = asyncio.run(main())
    if not launched:
        pytest.skip(f"Chromium is not available: {result}")
    return result


async def apply(page, selector, action, value=None):
    executor = ActionExecutor(page)
    return await executor.apply(await page.query_selector(selector), action, value)


PANEL_HTML = """
<div id="menu" class="hidden">
  <button onclick="this.parentElement.classList.toggle('hidden'); window.clicks = (window.clicks || 0) + 1">menu</button>
</div>
<div id="plain">plain panel</div>
<div id="collapsed" style="display: none">collapsed panel</div>
"""


class TestVisibilityActions:
    """Tests for show / hide / toggle against real containers."""

    def test_show_hidden_container_clicks_its_button(self):
        async def scenario(page):
            ok = await apply(page, "#menu", ActionKind.SHOW)
            return ok, await page.evaluate("window.clicks || 0"), await page.eval_on_selector(
                "#menu", "el => el.classList.contains('hidden')"
            )

        assert run_in_page(PANEL_HTML, scenario) == (True, 1, False)

    def test_show_visible_container_does_not_click(self):
        async def scenario(page):
            await page.eval_on_selector("#menu", "el => el.classList.remove('hidden')")
            ok = await apply(page, "#menu", ActionKind.SHOW)
            return ok, await page.evaluate("window.clicks || 0")

        assert run_in_page(PANEL_HTML, scenario) == (True, 0)

    def test_hide_visible_container_clicks_its_button(self):
        async def scenario(page):
            await page.eval_on_selector("#menu", "el => el.classList.remove('hidden')")
            ok = await apply(page, "#menu", ActionKind.HIDE)
            return ok, await page.evaluate("window.clicks || 0"), await page.eval_on_selector(
                "#menu", "el => el.classList.contains('hidden')"
            )

        assert run_in_page(PANEL_HTML, scenario) == (True, 1, True)

    def test_hide_without_button_adds_hidden_class(self):
        async def scenario(page):
            ok = await apply(page, "#plain", ActionKind.HIDE)
            return ok, await page.eval_on_selector("#plain", "el => el.classList.contains('hidden')")

        assert run_in_page(PANEL_HTML, scenario) == (True, True)

    def test_toggle_without_button(self):
        async def scenario(page):
            shown = await apply(page, "#collapsed", ActionKind.TOGGLE)
            display = await page.eval_on_selector("#collapsed", "el => el.style.display")
            hidden = await apply(page, "#plain", ActionKind.TOGGLE)
            plain_hidden = await page.eval_on_selector("#plain", "el => el.classList.contains('hidden')")
            return shown, display, hidden, plain_hidden

        assert run_in_page(PANEL_HTML, scenario) == (True, "", True, True)


FORM_HTML = """
<select id="size">
  <option value="">Choose a size</option>
  <option value="m">Medium</option>
  <option value="l">Large</option>
</select>
<select id="empty"><option value="">Nothing</option></select>
<div id="label">Read only</div>
<input id="name">
<div id="notes" contenteditable="true"></div>
<script>
  window.events = [];
  document.getElementById('name').addEventListener('input', () => window.events.push('input'));
  document.getElementById('size').addEventListener('change', () => window.events.push('change'));
</script>
"""


class TestFormActions:
    """Tests for select and type against real form controls."""

    def test_select_first_skips_empty_option(self):
        async def scenario(page):
            ok = await apply(page, "#size", ActionKind.SELECT)
            return ok, await page.eval_on_selector("#size", "el => el.value"), await page.evaluate("window.events")

        assert run_in_page(FORM_HTML, scenario) == (True, "m", ["change"])

    def test_select_without_real_option_fails(self):
        async def scenario(page):
            return await apply(page, "#empty", ActionKind.SELECT)

        assert run_in_page(FORM_HTML, scenario) is False

    def test_select_value_must_exist(self):
        async def scenario(page):
            chosen = await apply(page, "#size", ActionKind.SELECT, "l")
            missing = await apply(page, "#size", ActionKind.SELECT, "xxl")
            return chosen, missing

        assert run_in_page(FORM_HTML, scenario) == (True, False)

    def test_type_into_input_fires_input_event(self):
        async def scenario(page):
            ok = await apply(page, "#name", ActionKind.TYPE, "Ada")
            return ok, await page.eval_on_selector("#name", "el => el.value"), await page.evaluate("window.events")

        assert run_in_page(FORM_HTML, scenario) == (True, "Ada", ["input"])

    def test_type_into_contenteditable(self):
        async def scenario(page):
            ok = await apply(page, "#notes", ActionKind.TYPE, "remember milk")
            return ok, await page.eval_on_selector("#notes", "el => el.textContent")

        assert run_in_page(FORM_HTML, scenario) == (True, "remember milk")

    def test_type_on_non_editable_fails(self):
        async def scenario(page):
            ok = await apply(page, "#label", ActionKind.TYPE, "text")
            return ok, await page.eval_on_selector("#label", "el => el.textContent")

        assert run_in_page(FORM_HTML, scenario) == (False, "Read only")


RATING_HTML = """
<div id="stars" data-voice="rate this">
  <button onclick="window.score = 1">1</button>
  <button onclick="window.score = 2">2</button>
  <button onclick="window.score = 3">3</button>
</div>
<div id="no-stars">no buttons</div>
"""


class TestRating:
    """Tests for the rating action."""

    def test_default_policy_picks_last_button(self):
        async def scenario(page):
            ok = await apply(page, "#stars", ActionKind.RATE)
            return ok, await page.evaluate("window.score")

        assert run_in_page(RATING_HTML, scenario) == (True, 3)

    def test_no_rating_buttons_fails(self):
        async def scenario(page):
            return await apply(page, "#no-stars", ActionKind.RATE)

        assert run_in_page(RATING_HTML, scenario) is False


LAYOUT_HTML = """
<form id="login">
  <input data-key="user">
  <input data-key="pass">
</form>
<ul>
  <li><a href="#a" data-key="first-link">A</a></li>
  <li><a href="#b" data-key="second-link">B</a></li>
</ul>
<div class="row">
  <span>one</span><button data-key="row-1">1</button>
  <span>two</span><button data-key="row-2">2</button>
</div>
<button data-voice='say "hi"' data-key="quoted">Hi</button>
<button id="save" data-key="save">Save</button>
<button data-key="below" style="position: absolute; top: 5000px">Below the fold</button>
"""


class TestDiscoverInBrowser:
    """Tests for Locator.discover on a rendered page."""

    def test_locators_resolve_back_to_their_element(self):
        async def scenario(page):
            elements = await Locator(page).discover()
            resolved = {}
            for element in elements:
                keys = await page.eval_on_selector_all(element.locator, "els => els.map(e => e.dataset.key)")
                resolved[element.locator] = keys
            return resolved

        resolved = run_in_page(LAYOUT_HTML, scenario)

        assert resolved == {
            "form#login input:nth-of-type(1)": ["user"],
            "form#login input:nth-of-type(2)": ["pass"],
            "ul li:nth-of-type(1) a": ["first-link"],
            "ul li:nth-of-type(2) a": ["second-link"],
            "div.row button:nth-of-type(1)": ["row-1"],
            "div.row button:nth-of-type(2)": ["row-2"],
            '[data-voice="say \\"hi\\""]': ["quoted"],
            "#save": ["save"],
        }

    def test_discover_leaves_dom_untouched(self):
        async def scenario(page):
            before = await page.content()
            await Locator(page).discover()
            return before, await page.content()

        before, after = run_in_page(LAYOUT_HTML, scenario)
        assert before == after


class TestMatcherInBrowser:
    """Tests for the deterministic path on a rendered page."""

    def test_toggle_notifications(self):
        html = """
        <div id="notifications" class="hidden" data-voice="toggle notifications" data-voice-action="toggle">
          <button onclick="this.parentElement.classList.toggle('hidden')">bell</button>
        </div>
        """

        async def scenario(page):
            matcher = IntentMatcher(page, ActionExecutor(page))
            outcome = await matcher.resolve_and_execute("Toggle notifications!")
            hidden = await page.eval_on_selector("#notifications", "el => el.classList.contains('hidden')")
            return outcome.result, hidden

        assert run_in_page(html, scenario) == ('Executed toggle on "toggle notifications"', False)
