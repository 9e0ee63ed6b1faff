"""Router package exports."""
from . import agents, commission, offices, reports, settings, transactions

__all__ = [
	"agents",
	"commission",
	"offices",
	"reports",
	"settings",
	"transactions",
]
