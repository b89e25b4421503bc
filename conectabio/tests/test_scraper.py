import unittest
from unittest.mock import MagicMock, patch

import requests

from conectabio.errors import ExtractionError
from conectabio.scraper import scrape_profile


def html_response(html: str, url: str = "https://blog.example.com/") -> MagicMock:
    response = MagicMock()
    response.content = html.encode("utf-8")
    response.url = url
    response.raise_for_status.return_value = None
    return response


class ScraperTests(unittest.TestCase):
    @patch("conectabio.scraper.requests.get")
    def test_prefers_open_graph_tags(self, mock_get):
        mock_get.return_value = html_response(
            """
            <html><head>
              <title>Page title</title>
              <meta property="og:site_name" content="Ana's Newsletter">
              <meta property="og:title" content="Latest issue">
              <meta property="og:image" content="https://cdn.example.com/ana.png">
            </head><body></body></html>
            """
        )

        result = scrape_profile("https://blog.example.com/")

        self.assertEqual(result.profile_name, "Ana's Newsletter")
        self.assertEqual(result.profile_image, "https://cdn.example.com/ana.png")
        self.assertEqual(result.recent_posts, [])
        _, kwargs = mock_get.call_args
        self.assertIn("Mozilla", kwargs["headers"]["User-Agent"])
        self.assertEqual(kwargs["timeout"], 30)

    @patch("conectabio.scraper.requests.get")
    def test_falls_back_to_class_names_and_relative_images(self, mock_get):
        mock_get.return_value = html_response(
            """
            <html><head><title>Ignored</title></head><body>
              <h1 class="header publication-name">The Weekly</h1>
              <img class="user-avatar" src="/img/me.jpg">
            </body></html>
            """
        )

        result = scrape_profile("https://blog.example.com/")

        self.assertEqual(result.profile_name, "The Weekly")
        self.assertEqual(result.profile_image, "https://blog.example.com/img/me.jpg")

    @patch("conectabio.scraper.requests.get")
    def test_uses_title_and_icon_as_last_resort(self, mock_get):
        mock_get.return_value = html_response(
            """
            <html><head>
              <title>Plain Site</title>
              <link rel="shortcut icon" href="favicon.ico">
            </head><body></body></html>
            """,
            url="https://plain.example.com/about/",
        )

        result = scrape_profile("https://plain.example.com/about/")

        self.assertEqual(result.profile_name, "Plain Site")
        self.assertEqual(result.profile_image, "https://plain.example.com/about/favicon.ico")

    @patch("conectabio.scraper.requests.get")
    def test_nothing_found(self, mock_get):
        mock_get.return_value = html_response("<html><body><p>hi</p></body></html>")

        with self.assertRaises(ExtractionError):
            scrape_profile("https://blog.example.com/")

    @patch("conectabio.scraper.requests.get")
    def test_http_failure(self, mock_get):
        mock_get.side_effect = requests.ConnectionError("boom")

        with self.assertRaises(ExtractionError) as ctx:
            scrape_profile("https://down.example.com/")

        self.assertIsInstance(ctx.exception.__cause__, requests.ConnectionError)


if __name__ == "__main__":
    unittest.main()
