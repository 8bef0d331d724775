"""External services used by the SAF auth service."""

from .agent import SecurityAgent, HTTPSecurityAgent
