"""
Name lookups for report rows: branches, warehouses, sellers and the company profile

Sellers are referenced interchangeably by account id, display name or account
number, so seller matching tries each of them in turn.
"""

import re
import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

from utils.dates_numbers import normalize_text

logger = logging.getLogger(__name__)

UNSPECIFIED = 'غير محدد'

# Looks like a generated document id rather than a name
_LIKELY_ID = re.compile(r'^[a-zA-Z0-9_-]{10,}$')

DEFAULT_COMPANY = {
    'arabicName': 'شركة تجريبية للتجارة',
    'englishName': 'Sample Trading Company',
    'commercialRegistration': '',
    'taxFile': '',
    'city': '',
    'phone': '',
    'mobile': '',
    'logoUrl': '',
}


class NameLookup:
    """id -> display name; unknown ids are echoed back"""

    NAME_FIELDS = ('nameAr', 'name', 'nameEn')

    def __init__(self, documents: Iterable[Dict[str, Any]] = ()):
        self._names: Dict[str, str] = {}
        for document in documents:
            doc_id = normalize_text(document.get('id'))
            if not doc_id:
                continue
            for field_name in self.NAME_FIELDS:
                name = normalize_text(document.get(field_name))
                if name:
                    self._names[doc_id] = name
                    break

    def __len__(self):
        return len(self._names)

    def name(self, doc_id: Any) -> str:
        key = normalize_text(doc_id)
        return self._names.get(key, key)


@dataclass(frozen=True)
class SalesRep:
    id: str
    name: str
    number: str = ''


class SellerDirectory:
    """Sales representative accounts used to match and display sellers"""

    def __init__(self, reps: Iterable[SalesRep] = ()):
        self.reps: List[SalesRep] = list(reps)

    @classmethod
    def from_documents(cls, documents: Iterable[Dict[str, Any]]) -> 'SellerDirectory':
        reps = []
        for document in documents:
            name = normalize_text(document.get('nameAr') or document.get('name'))
            doc_id = normalize_text(document.get('id'))
            if not name or not doc_id:
                continue
            reps.append(SalesRep(id=doc_id, name=name, number=normalize_text(document.get('code') or document.get('number'))))
        return cls(reps)

    def _by_id(self, value: str) -> Optional[SalesRep]:
        return next((rep for rep in self.reps if rep.id == value), None)

    def _by_name(self, value: str) -> Optional[SalesRep]:
        lowered = value.lower()
        return next((rep for rep in self.reps if rep.name == value or rep.name.lower() == lowered), None)

    def _by_number(self, value: str) -> Optional[SalesRep]:
        return next((rep for rep in self.reps if rep.number and rep.number == value), None)

    def matches(self, line_seller: Any, wanted: Any) -> bool:
        """
        Whether the seller recorded on a line is the wanted seller

        Tried in order: direct equality, id -> name, name -> id, account
        number. The line is excluded only when none of them match.
        """
        line_seller = normalize_text(line_seller)
        wanted = normalize_text(wanted)
        if not wanted:
            return True
        if not line_seller:
            return False

        if line_seller == wanted:
            return True

        rep = self._by_id(line_seller)
        if rep is not None and rep.name == wanted:
            return True

        rep = self._by_name(line_seller)
        if rep is not None and wanted in (rep.id, rep.name):
            return True

        rep = self._by_number(line_seller)
        if rep is not None and wanted in (rep.id, rep.name):
            return True

        return False

    def display_name(self, seller: Any) -> str:
        """Display name of a seller reference, or غير محدد for unresolved ids"""
        seller = normalize_text(seller)
        if not seller:
            return UNSPECIFIED

        rep = self._by_id(seller) or self._by_name(seller) or self._by_number(seller)
        if rep is not None:
            return rep.name

        lowered = seller.lower()
        for rep in self.reps:
            if rep.name.lower() in lowered or lowered in rep.name.lower():
                return rep.name

        return UNSPECIFIED if _LIKELY_ID.match(seller) else seller


def company_profile(documents: Iterable[Dict[str, Any]]) -> Dict[str, Any]:
    """First company document merged over the defaults"""
    for document in documents:
        profile = dict(DEFAULT_COMPANY)
        profile.update({k: v for k, v in document.items() if v not in (None, '')})
        return profile
    logger.info("No company profile found, using defaults")
    return dict(DEFAULT_COMPANY)
