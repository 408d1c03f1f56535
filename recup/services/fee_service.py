"""
Fee and roster rules for RECUP competitions.

  - compute_fee     : total registration fee for a team
  - roster_cap      : maximum team size (leader included)
  - requires_school : whether the "Asal Sekolah" field is asked
  - fee_breakdown   : caption shown under the total

All functions are pure; competitions are matched by display name.
"""
from __future__ import annotations

from typing import Optional

from recup.models import Competition

SHORT_MOVIE = "Short Movie"
SHORT_MOVIE_INCLUDED_PEOPLE = 5
SHORT_MOVIE_EXTRA_FEE = 20000

DEFAULT_ROSTER_CAP = 100

# Team size including the leader
ROSTER_CAPS: dict[str, int] = {
    "Basket Putra":     12,
    "Basket Putri":     12,
    "Voli Putra":       12,
    "Voli Putri":       12,
    "Futsal Putra SMP": 12,
    "Futsal Putra SMA": 12,
    "E-sport MLBB SMP":  7,
    "E-sport MLBB SMA":  7,
    "Modern Dance":     10,
    "KIR":               3,
    "Band":              7,
    "English Debate":    3,
}

# Competitions entered by non-school teams
SCHOOL_EXEMPT = frozenset({"Modern Dance", "Band", "English Debate"})


def compute_fee(competition: Optional[Competition], team_size: int) -> int:
    """
    Total fee in rupiah.

    team_size counts the leader (members + 1).  Every competition charges a
    flat fee per team except Short Movie, where the flat fee covers five
    people and each additional person costs SHORT_MOVIE_EXTRA_FEE.
    """
    if competition is None:
        return 0

    base_fee = competition.fee or 0
    if competition.name == SHORT_MOVIE and team_size > SHORT_MOVIE_INCLUDED_PEOPLE:
        extra_people = team_size - SHORT_MOVIE_INCLUDED_PEOPLE
        return base_fee + extra_people * SHORT_MOVIE_EXTRA_FEE
    return base_fee


def roster_cap(competition: Optional[Competition]) -> int:
    """A cap sent by the backend wins over the built-in table."""
    if competition is None:
        return DEFAULT_ROSTER_CAP
    if competition.max_team_size:
        return competition.max_team_size
    return ROSTER_CAPS.get(competition.name, DEFAULT_ROSTER_CAP)


def requires_school(competition: Optional[Competition]) -> bool:
    if competition is None:
        return True
    return competition.name not in SCHOOL_EXEMPT


def format_rupiah(amount: int) -> str:
    """150000 → 'Rp 150.000' (Indonesian thousands separator)."""
    return "Rp " + f"{amount:,}".replace(",", ".")


def fee_breakdown(competition: Optional[Competition], team_size: int) -> str:
    if competition is None:
        return ""
    if competition.name == SHORT_MOVIE:
        if team_size <= SHORT_MOVIE_INCLUDED_PEOPLE:
            return f"{team_size} orang (termasuk dalam base fee)"
        extra = team_size - SHORT_MOVIE_INCLUDED_PEOPLE
        return (
            f"Base fee ({SHORT_MOVIE_INCLUDED_PEOPLE} orang) + {extra} orang × "
            f"{format_rupiah(SHORT_MOVIE_EXTRA_FEE)}"
        )
    return f"Harga flat per tim ({team_size} orang)"
