"""
OCLC Classify2 client.

Looks a book up by ISBN, work id (``wi``) or title/author and returns its
Library of Congress call number together with the title and first author.
"""

from dataclasses import dataclass, asdict
from typing import Optional

import requests
from bs4 import BeautifulSoup
from loguru import logger

from errors import ClassificationNotFound, ClassificationUnavailable

# Classify2 response codes
SINGLE_WORK_SUMMARY = "0"
SINGLE_WORK_DETAIL = "2"
MULTI_WORK = "4"
NO_INPUT = "100"
INVALID_INPUT = "101"
NOT_FOUND = "102"
UNEXPECTED_ERROR = "200"

AUTHOR_DELIMITER = "|"


@dataclass
class Classification:
    """Successful lookup."""
    title: str
    author: str
    call_no: str
    work_id: Optional[str] = None
    dewey: Optional[str] = None

    def to_dict(self):
        return asdict(self)


def first_author(authors):
    if not authors:
        return ""
    return authors.split(AUTHOR_DELIMITER)[0].strip()


def _most_popular(soup, scheme):
    node = soup.find(scheme)
    if node is None:
        return ""
    popular = node.find("mostpopular")
    if popular is None:
        return ""
    return popular.get("sfa") or popular.get("nsfa") or ""


def _work_id(work):
    return work.get("wi") or work.get_text(strip=True) or None


def parse_response(payload):
    """
    Parse a Classify2 XML document.

    Returns a tuple of (response code, Classification or None). For a
    multi-work response the Classification is None and the first work's id
    is returned in its place so the caller can re-query.
    """
    soup = BeautifulSoup(payload, "html.parser")

    response = soup.find("response")
    if response is None or not response.get("code"):
        raise ClassificationUnavailable("response element missing")
    code = response["code"]

    if code == MULTI_WORK:
        work = soup.find("work")
        return code, _work_id(work) if work is not None else None

    if code not in (SINGLE_WORK_SUMMARY, SINGLE_WORK_DETAIL):
        return code, None

    work = soup.find("work")
    if work is None:
        return NOT_FOUND, None

    return code, Classification(
        title=(work.get("title") or "").strip(),
        author=first_author(work.get("author")),
        call_no=_most_popular(soup, "lcc"),
        work_id=_work_id(work),
        dewey=_most_popular(soup, "ddc") or None,
    )


class ClassifyClient:
    """Client for the OCLC Classify2 API."""

    def __init__(self, base_url: str, timeout: float = 10.0, session: requests.Session = None):
        self.base_url = base_url
        self.timeout = timeout
        self.session = session or requests.Session()

    def classify(self, isbn=None, wi=None, title=None, author=None) -> Classification:
        """
        Look a book up by exactly one key: ``isbn``, ``wi`` or ``title``/``author``.

        Raises:
            ClassificationNotFound: no match, or a match without a title
            ClassificationUnavailable: the service could not be reached or
                answered with something other than a result
        """
        if isbn:
            params = {"isbn": isbn}
        elif wi:
            params = {"wi": wi}
        elif title or author:
            params = {k: v for k, v in (("title", title), ("author", author)) if v}
        else:
            raise ValueError("classify() needs isbn, wi, or title/author")

        code, result = self._request(params)

        if code == MULTI_WORK:
            if not result:
                raise ClassificationNotFound(f"multi-work response without a work id for {params}")
            logger.debug(f"Multiple works for {params}, using wi={result}")
            code, result = self._request({"wi": result})

        if code in (NOT_FOUND, NO_INPUT, INVALID_INPUT) or result is None:
            raise ClassificationNotFound(f"classify response code {code} for {params}")
        if not isinstance(result, Classification):
            raise ClassificationUnavailable(f"unexpected classify response code {code}")
        if not result.title:
            raise ClassificationNotFound(f"empty title for {params}")

        logger.info(f"Classified {params} as {result.call_no!r} ({result.title})")
        return result

    def _request(self, params):
        query = dict(params, summary="true")
        try:
            resp = self.session.get(self.base_url, params=query, timeout=self.timeout)
            resp.raise_for_status()
        except requests.RequestException as e:
            logger.error(f"Classify request failed for {params}: {e}")
            raise ClassificationUnavailable(str(e)) from e

        code, result = parse_response(resp.text)
        if code == UNEXPECTED_ERROR:
            logger.error(f"Classify reported an unexpected error for {params}")
            raise ClassificationUnavailable("service reported an unexpected error")
        return code, result

    def close(self):
        self.session.close()
