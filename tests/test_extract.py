from harvester.adapters.base import ImageRecord
from harvester.adapters.extract import largest_from_srcset, select_image_urls
from harvester.resolver import ContentType


def test_largest_from_srcset_picks_widest():
    srcset = "https://a/s.jpg 320w, https://a/l.jpg 1280w, https://a/m.jpg 640w"
    assert largest_from_srcset(srcset) == "https://a/l.jpg"


def test_largest_from_srcset_missing_widths_count_as_zero():
    assert largest_from_srcset("https://a/x.jpg, https://a/y.jpg 2x") == "https://a/y.jpg"


def test_png_search_takes_every_absolute_src_without_size_filter():
    records = [
        ImageRecord(src="https://cdn/a.png", width=10),
        ImageRecord(src="data:image/png;base64,AAA", width=500),
        ImageRecord(src="https://cdn/b.png", srcset="https://cdn/big.png 900w", width=0),
    ]
    assert select_image_urls(records, ContentType.PNG_SEARCH) == ["https://cdn/a.png", "https://cdn/b.png"]


def test_image_link_preferred_over_img_src():
    rec = ImageRecord(src="https://cdn/thumb.jpg", link_href="https://cdn/full.JPG?dl=1", width=10)
    assert select_image_urls([rec], ContentType.PHOTO_SEARCH) == ["https://cdn/full.JPG?dl=1"]


def test_non_image_link_falls_back_to_srcset():
    rec = ImageRecord(
        src="https://cdn/s.jpg",
        srcset="https://cdn/s.jpg 200w, https://cdn/xl.jpg 2000w",
        link_href="https://site/photos/123",
        width=200,
    )
    assert select_image_urls([rec], ContentType.URL) == ["https://cdn/xl.jpg"]


def test_small_and_relative_images_are_dropped():
    records = [
        ImageRecord(src="https://cdn/icon.jpg", width=50),
        ImageRecord(src="/relative.jpg", width=800),
        ImageRecord(src="https://cdn/ok.jpg", width=51),
    ]
    assert select_image_urls(records, ContentType.PHOTO_SEARCH) == ["https://cdn/ok.jpg"]
