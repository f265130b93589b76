import pytest

from price_monitor.fetchers.extractor import SNAPSHOT_CHARS, extract, parse_price, snapshot
from price_monitor.models import NO_DESCRIPTION


@pytest.mark.parametrize(
    "text, expected",
    [
        ("£12,995", 12995.0),
        ("Now £1,299.99 inc VAT", 1299.99),
        ("$ 450", 450.0),
        ("€89.50", 89.5),
        ("£0", None),
        ("Call for price", None),
        ("", None),
    ],
)
def test_parse_price(text, expected):
    assert parse_price(text) == expected


def test_structured_metadata_wins_over_visible_text():
    html = """
    <html><head>
      <meta property="product:price:amount" content="499.00">
    </head><body><span class="price">£549</span></body></html>
    """
    assert extract(html).price == 499.0


def test_itemprop_price_with_currency_text():
    html = '<div><span itemprop="price">£1,050</span></div>'
    assert extract(html).price == 1050.0


def test_selectors_are_tried_in_priority_order():
    html = """
    <div class="sale-price">£80</div>
    <div class="product-price">£95</div>
    """
    assert extract(html).price == 95.0


def test_selector_without_amount_falls_through():
    html = """
    <div class="price">Price on application</div>
    <div class="current-price">£2,400</div>
    """
    assert extract(html).price == 2400.0


def test_free_text_search_is_last_resort():
    html = "<html><body><p>Intro</p><span>Only £7,250 today</span></body></html>"
    assert extract(html).price == 7250.0


def test_missing_price_reports_none():
    found = extract("<html><body><p>No amounts here</p></body></html>")

    assert found.price is None
    assert found.mileage is None
    assert found.description == NO_DESCRIPTION


def test_mileage_from_dedicated_element():
    html = '<div class="price">£9,000</div><span class="vehicle-mileage">62,310 miles</span>'
    assert extract(html).mileage == 62310


def test_mileage_absence_is_not_an_error():
    found = extract('<div class="price">£9,000</div>')

    assert found.price == 9000.0
    assert found.mileage is None


def test_description_falls_back_through_selectors():
    html = '<div class="product-title">  Lego AT-AT 75313 </div><div class="price">£639.99</div>'
    assert extract(html).description == "Lego AT-AT 75313"


def test_snapshot_is_bounded():
    html = "x" * (SNAPSHOT_CHARS * 2)
    assert len(snapshot(html)) == SNAPSHOT_CHARS


@pytest.mark.parametrize(
    "html",
    [
        '<div class="price">£9,000</div><ul><li>Reduced, miles to spare</li></ul>',
        '<div class="price">£9,000</div><span class="mileage">, miles</span>',
    ],
)
def test_comma_without_digits_is_not_mileage(html):
    found = extract(html)

    assert found.price == 9000.0
    assert found.mileage is None


def test_list_items_without_numbers_are_skipped():
    html = '<div class="price">£9,000</div><ul><li>Low miles</li><li>31,200 miles</li></ul>'
    assert extract(html).mileage == 31200


@pytest.mark.parametrize("text", ["£,", "£ ,,,", "$,99"])
def test_currency_symbol_before_bare_commas_is_not_a_price(text):
    assert parse_price(text) is None


@pytest.mark.parametrize("content", ["Infinity", "inf", "NaN", "1e999"])
def test_non_finite_metadata_price_is_ignored(content):
    html = f'<meta property="product:price:amount" content="{content}"><span class="price">£120</span>'
    assert extract(html).price == 120.0
