"""Faculty scraper: parse one directory page and merge it into the store."""

from __future__ import annotations

import logging
import re
from typing import Any
from urllib.parse import urljoin

import requests
from bs4 import BeautifulSoup

from facdir.data.models import ScrapedFaculty, ScrapeResult
from facdir.directory import Directory
from facdir.errors import DirectoryError
from facdir.net.http_client import HttpClient

logger = logging.getLogger("facdir")

DEFAULT_SELECTORS = {
    "card": ".faculty-card",
    "name": ".faculty-name",
    "designation": ".designation",
    "qualification": ".qualification",
    "email": ".email",
    "phone": ".phone",
    "department": ".department",
}


class FacultyScraper:
    """Scrape a faculty listing page into the faculty table.

    The page is expected to hold one element per person (``.faculty-card``
    by default) with the fields in child elements; selectors can be
    overridden under ``scraper.selectors`` in the config.  Records are
    merged by email, and every run writes one scrape-log row.
    """

    def __init__(
        self,
        http_client: HttpClient,
        directory: Directory,
        config: dict[str, Any] | None = None,
    ) -> None:
        self.client = http_client
        self.directory = directory
        self.config = config or {}
        overrides = (self.config.get("scraper") or {}).get("selectors") or {}
        self.selectors = {**DEFAULT_SELECTORS, **overrides}

    def scrape(self, url: str) -> ScrapeResult:
        """Fetch *url*, upsert the faculty found there and log the run."""
        count = 0
        status = "success"
        error: str | None = None
        records: list[ScrapedFaculty] = []

        try:
            html = self.client.fetch_html(url)
            records = self.parse_faculty_page(html, url)
            self._resolve_departments(records)
            cleaned = (clean_faculty_data(r.model_dump()) for r in records)
            # Email is the merge key; records without one are dropped.
            rows = [row for row in cleaned if row["email"]]
            if rows:
                self.directory.faculty.bulk_upsert(rows, "email")
                count = len(rows)
        except (requests.RequestException, DirectoryError, ValueError) as e:
            logger.error("Scrape failed", extra={"url": url, "error": str(e)})
            status = "failed"
            error = str(e)

        self.directory.scrape_logs.log(count, status, error)
        logger.info(
            "Scrape finished",
            extra={"url": url, "status": status, "records": count},
        )
        return ScrapeResult(success=status == "success", count=count, error=error, records=records)

    def parse_faculty_page(self, html: str, source_url: str) -> list[ScrapedFaculty]:
        """Parse every faculty card on the page; unparseable cards are skipped."""
        soup = BeautifulSoup(html, "lxml")
        members: list[ScrapedFaculty] = []
        for card in soup.select(self.selectors["card"]):
            try:
                member = self._parse_card(card, source_url)
            except Exception as e:
                logger.warning(
                    "Could not parse faculty card",
                    extra={"url": source_url, "error": str(e)},
                )
                continue
            if member:
                members.append(member)
        return members

    def _parse_card(self, card, source_url: str) -> ScrapedFaculty | None:
        name = self._text(card, "name")
        if not name:
            # Fall back to the first heading in the card.
            heading = card.find(["h2", "h3", "h4"])
            name = heading.get_text(strip=True) if heading else ""
        if not name:
            return None

        email = self._text(card, "email")
        if not email:
            mailto = card.find("a", href=re.compile(r"^mailto:", re.I))
            if mailto:
                email = mailto["href"].split(":", 1)[1].split("?", 1)[0]

        profile_link = ""
        for link in card.find_all("a", href=True):
            if not link["href"].lower().startswith("mailto:"):
                profile_link = urljoin(source_url, link["href"])
                break

        return ScrapedFaculty(
            name=name,
            designation=self._text(card, "designation"),
            qualification=self._text(card, "qualification"),
            email=email,
            phone=self._text(card, "phone"),
            profile_link=profile_link,
            department=self._text(card, "department"),
        )

    def _text(self, card, field: str) -> str:
        tag = card.select_one(self.selectors[field])
        return tag.get_text(" ", strip=True) if tag else ""

    def _resolve_departments(self, records: list[ScrapedFaculty]) -> None:
        """Fill ``department_id`` by case-insensitive department name."""
        if not any(r.department for r in records):
            return
        by_name = {
            (d.department_name or "").strip().lower(): d.department_id
            for d in self.directory.departments.get_all()
        }
        for record in records:
            if record.department:
                record.department_id = by_name.get(record.department.strip().lower())


def clean_faculty_data(raw: dict[str, Any]) -> dict[str, Any]:
    """Normalize a scraped faculty record for storage.

    Collapses whitespace in the name, lowercases the email, keeps only the
    digits of the phone number and trims everything else.
    """
    return {
        "name": re.sub(r"\s+", " ", (raw.get("name") or "").strip()),
        "designation": (raw.get("designation") or "").strip(),
        "qualification": (raw.get("qualification") or "").strip(),
        "email": (raw.get("email") or "").strip().lower(),
        "phone": re.sub(r"\D", "", raw.get("phone") or ""),
        "profile_link": (raw.get("profile_link") or "").strip(),
        "department_id": raw.get("department_id") or None,
    }
