# reconsuite/scanner/signatures.py
"""
Signature catalog for technology, parameter and vulnerability matching.

This module is data only. The matching engines in scanner/strategies read a
SignatureCatalog injected at construction time, so they can be tested
against small hand-built catalogs and the tables below can be tuned
without touching detection logic.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List

from .base import Severity


# ---------------------------------------------------------------------------
# Catalog entry types
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TechSignature:
    """
    One way of recognising a technology.

    source:        header | cookie | body | meta | host
    key:           header name (header), cookie name regex (cookie),
                   meta name (meta); unused for body / host
    pattern:       case-insensitive regex searched in the selected text
    version_group: regex group holding the version, 0 for none
    """
    name: str
    category: str
    source: str
    pattern: str
    key: str = ""
    version_group: int = 0
    confidence: int = 80


@dataclass(frozen=True)
class ParameterSignature:
    name: str
    type: str                   # number, string, url


@dataclass(frozen=True)
class VulnSignature:
    """
    One passive check.

    check:    missing_header | missing_hsts | version_disclosure |
              cookie_flag | body_pattern | header_value
    argument: check-specific (header name, flag name, regex, ...)
    """
    type: str
    description: str
    severity: Severity
    check: str
    argument: Any = None
    confidence: int = 80


@dataclass(frozen=True)
class SignatureCatalog:
    technologies: Dict[str, List[TechSignature]] = field(default_factory=dict)
    # trigger category -> categories that must also be evaluated when it matches
    coverage_rules: Dict[str, List[str]] = field(default_factory=dict)
    parameters: List[ParameterSignature] = field(default_factory=list)
    vulnerabilities: Dict[str, List[VulnSignature]] = field(default_factory=dict)

    def tech_categories(self) -> List[str]:
        return list(self.technologies)


# ---------------------------------------------------------------------------
# Technologies: category -> signatures
# ---------------------------------------------------------------------------

def _t(name, category, source, pattern, key="", version_group=0, confidence=80) -> TechSignature:
    return TechSignature(name, category, source, pattern, key, version_group, confidence)


_WEB_SERVERS = "Web Servers"
_LANGUAGES = "Programming Languages"
_JS_FRAMEWORKS = "JavaScript Frameworks"
_CMS = "CMS"
_ANALYTICS = "Analytics"
_OS = "Operating Systems"
_CACHING = "Caching"
_PROXIES = "Reverse Proxies"
_SECURITY = "Security"
_JS_LIBRARIES = "JavaScript Libraries"
_WEB_FRAMEWORKS = "Web Frameworks"
_DATABASES = "Databases"
_PAYMENTS = "Payment Processors"
_CICD = "CI/CD"
_HOSTING = "Hosting"

TECH_SIGNATURES: Dict[str, List[TechSignature]] = {
    _WEB_SERVERS: [
        _t("Apache", _WEB_SERVERS, "header", r"Apache(?:/([\d.]+))?", key="server", version_group=1, confidence=95),
        _t("Nginx", _WEB_SERVERS, "header", r"nginx(?:/([\d.]+))?", key="server", version_group=1, confidence=95),
        _t("Microsoft IIS", _WEB_SERVERS, "header", r"Microsoft-IIS(?:/([\d.]+))?", key="server", version_group=1, confidence=95),
        _t("LiteSpeed", _WEB_SERVERS, "header", r"LiteSpeed(?:/([\d.]+))?", key="server", version_group=1, confidence=95),
        _t("Caddy", _WEB_SERVERS, "header", r"Caddy", key="server", confidence=90),
        _t("Gunicorn", _WEB_SERVERS, "header", r"gunicorn(?:/([\d.]+))?", key="server", version_group=1, confidence=90),
    ],
    _LANGUAGES: [
        _t("PHP", _LANGUAGES, "header", r"PHP(?:/([\d.]+))?", key="x-powered-by", version_group=1, confidence=95),
        _t("PHP", _LANGUAGES, "cookie", r"PHPSESSID", key=r"^PHPSESSID$", confidence=75),
        _t("Node.js", _LANGUAGES, "header", r"Express", key="x-powered-by", confidence=75),
        _t("Python", _LANGUAGES, "header", r"Python/([\d.]+)", key="server", version_group=1, confidence=90),
        _t("Ruby", _LANGUAGES, "header", r"Phusion Passenger|Ruby", key="x-powered-by", confidence=70),
        _t("ASP.NET", _LANGUAGES, "header", r"ASP\.NET", key="x-powered-by", confidence=90),
        _t("ASP.NET", _LANGUAGES, "header", r"([\d.]+)", key="x-aspnet-version", version_group=1, confidence=95),
        _t("Java", _LANGUAGES, "cookie", r"JSESSIONID", key=r"^JSESSIONID$", confidence=75),
    ],
    _JS_FRAMEWORKS: [
        _t("React", _JS_FRAMEWORKS, "body", r"data-reactroot|react(?:-dom)?(?:\.production)?(?:\.min)?\.js", confidence=80),
        _t("Next.js", _JS_FRAMEWORKS, "body", r"__NEXT_DATA__|/_next/static/", confidence=90),
        _t("Angular", _JS_FRAMEWORKS, "body", r"ng-version=\"([\d.]+)\"", version_group=1, confidence=90),
        _t("Vue.js", _JS_FRAMEWORKS, "body", r"data-v-[0-9a-f]{8}|vue(?:\.runtime)?(?:\.global)?(?:\.min)?\.js", confidence=75),
        _t("Svelte", _JS_FRAMEWORKS, "body", r"class=\"[^\"]*svelte-[a-z0-9]{5,}", confidence=75),
    ],
    _CMS: [
        _t("WordPress", _CMS, "meta", r"WordPress ?([\d.]+)?", key="generator", version_group=1, confidence=95),
        _t("WordPress", _CMS, "body", r"/wp-content/|/wp-includes/", confidence=85),
        _t("WordPress", _CMS, "host", r"(?:^|[.-])(?:wordpress|wp)(?:[.-]|$)", confidence=40),
        _t("Drupal", _CMS, "header", r"Drupal ?([\d.]+)?", key="x-generator", version_group=1, confidence=95),
        _t("Drupal", _CMS, "meta", r"Drupal ?([\d.]+)?", key="generator", version_group=1, confidence=90),
        _t("Joomla", _CMS, "meta", r"Joomla!?", key="generator", confidence=90),
        _t("Magento", _CMS, "body", r"Mage\.Cookies|/static/frontend/Magento", confidence=80),
        _t("Shopify", _CMS, "body", r"cdn\.shopify\.com", confidence=90),
        _t("Shopify", _CMS, "header", r".+", key="x-shopid", confidence=95),
        _t("Shopify", _CMS, "host", r"(?:^|\.)myshopify\.com$|shopify", confidence=40),
        _t("Wix", _CMS, "body", r"static\.wixstatic\.com|static\.parastorage\.com", confidence=90),
        _t("Wix", _CMS, "host", r"wix", confidence=40),
    ],
    _ANALYTICS: [
        _t("Google Analytics", _ANALYTICS, "body", r"google-analytics\.com/(?:ga|analytics)\.js|googletagmanager\.com/gtag/js", confidence=90),
        _t("Matomo", _ANALYTICS, "body", r"matomo\.js|piwik\.js", confidence=85),
        _t("HotJar", _ANALYTICS, "body", r"static\.hotjar\.com", confidence=90),
        _t("Mixpanel", _ANALYTICS, "body", r"cdn\.mxpnl\.com|mixpanel\.init", confidence=85),
    ],
    _OS: [
        _t("Ubuntu", _OS, "header", r"\(Ubuntu\)", key="server", confidence=80),
        _t("Debian", _OS, "header", r"\(Debian\)", key="server", confidence=80),
        _t("CentOS", _OS, "header", r"\(CentOS\)", key="server", confidence=80),
        _t("Windows Server", _OS, "header", r"Microsoft-IIS|Win(?:32|64)", key="server", confidence=60),
    ],
    _CACHING: [
        _t("Varnish", _CACHING, "header", r".+", key="x-varnish", confidence=90),
        _t("Varnish", _CACHING, "header", r"varnish", key="via", confidence=85),
        _t("Memcached", _CACHING, "header", r"memcached", key="x-cache-engine", confidence=60),
    ],
    _PROXIES: [
        _t("Cloudflare", _PROXIES, "header", r"cloudflare", key="server", confidence=95),
        _t("Cloudflare", _PROXIES, "header", r".+", key="cf-ray", confidence=95),
        _t("HAProxy", _PROXIES, "cookie", r"SERVERID", key=r"^SERVERID$", confidence=50),
        _t("Envoy", _PROXIES, "header", r"envoy", key="server", confidence=90),
    ],
    _SECURITY: [
        _t("Sucuri", _SECURITY, "header", r".+", key="x-sucuri-id", confidence=95),
        _t("ModSecurity", _SECURITY, "header", r"Mod_Security|NOYB", key="server", confidence=80),
        _t("Cloudflare WAF", _SECURITY, "cookie", r"__cf_bm|cf_clearance", key=r"^(?:__cf_bm|cf_clearance)$", confidence=70),
        _t("Imperva", _SECURITY, "cookie", r"incap_ses|visid_incap", key=r"^(?:incap_ses|visid_incap)", confidence=85),
    ],
    _JS_LIBRARIES: [
        _t("jQuery", _JS_LIBRARIES, "body", r"jquery[.-]?([\d]+\.[\d.]+)?(?:\.slim)?(?:\.min)?\.js", version_group=1, confidence=85),
        _t("Lodash", _JS_LIBRARIES, "body", r"lodash(?:\.min)?\.js", confidence=80),
        _t("Moment.js", _JS_LIBRARIES, "body", r"moment(?:-with-locales)?(?:\.min)?\.js", confidence=80),
        _t("D3.js", _JS_LIBRARIES, "body", r"d3(?:\.v\d)?(?:\.min)?\.js", confidence=75),
    ],
    _WEB_FRAMEWORKS: [
        _t("Bootstrap", _WEB_FRAMEWORKS, "body", r"bootstrap[.-]?([\d]+\.[\d.]+)?(?:\.bundle)?(?:\.min)?\.(?:css|js)", version_group=1, confidence=85),
        _t("Tailwind CSS", _WEB_FRAMEWORKS, "body", r"tailwind(?:css)?(?:\.min)?\.css|cdn\.tailwindcss\.com", confidence=80),
        _t("Material UI", _WEB_FRAMEWORKS, "body", r"Mui[A-Z][A-Za-z]+-root", confidence=80),
        _t("Bulma", _WEB_FRAMEWORKS, "body", r"bulma(?:\.min)?\.css", confidence=85),
    ],
    _DATABASES: [
        _t("MySQL", _DATABASES, "body", r"You have an error in your SQL syntax|mysql_fetch_", confidence=70),
        _t("PostgreSQL", _DATABASES, "body", r"PG::SyntaxError|pg_query\(\)", confidence=70),
        _t("MongoDB", _DATABASES, "body", r"MongoError|MongoServerError", confidence=70),
    ],
    _PAYMENTS: [
        _t("Stripe", _PAYMENTS, "body", r"js\.stripe\.com", confidence=95),
        _t("PayPal", _PAYMENTS, "body", r"paypal\.com/sdk/js|paypalobjects\.com", confidence=90),
        _t("Square", _PAYMENTS, "body", r"web\.squarecdn\.com|js\.squareup\.com", confidence=90),
        _t("Braintree", _PAYMENTS, "body", r"js\.braintreegateway\.com", confidence=90),
    ],
    _CICD: [
        _t("Jenkins", _CICD, "header", r"([\d.]+)", key="x-jenkins", version_group=1, confidence=95),
        _t("GitLab", _CICD, "meta", r"GitLab", key="og:site_name", confidence=85),
    ],
    _HOSTING: [
        _t("AWS", _HOSTING, "header", r"AmazonS3|awselb", key="server", confidence=90),
        _t("AWS", _HOSTING, "header", r".+", key="x-amz-cf-id", confidence=90),
        _t("GCP", _HOSTING, "header", r"Google Frontend|gws", key="server", confidence=80),
        _t("Azure", _HOSTING, "header", r".+", key="x-azure-ref", confidence=90),
        _t("Heroku", _HOSTING, "header", r"vegur", key="via", confidence=90),
        _t("Netlify", _HOSTING, "header", r"Netlify", key="server", confidence=95),
        _t("Vercel", _HOSTING, "header", r".+", key="x-vercel-id", confidence=95),
    ],
}

COVERAGE_RULES: Dict[str, List[str]] = {
    _JS_FRAMEWORKS: [_JS_LIBRARIES],
}


# ---------------------------------------------------------------------------
# Parameters
# ---------------------------------------------------------------------------

PARAMETER_SIGNATURES: List[ParameterSignature] = [
    ParameterSignature("id", "number"),
    ParameterSignature("page", "number"),
    ParameterSignature("q", "string"),
    ParameterSignature("search", "string"),
    ParameterSignature("filter", "string"),
    ParameterSignature("sort", "string"),
    ParameterSignature("limit", "number"),
    ParameterSignature("offset", "number"),
    ParameterSignature("token", "string"),
    ParameterSignature("callback", "string"),
    ParameterSignature("redirect", "url"),
    ParameterSignature("lang", "string"),
    ParameterSignature("theme", "string"),
]


# ---------------------------------------------------------------------------
# Vulnerabilities: passive checks only, grouped by category
# ---------------------------------------------------------------------------

_HEADERS = "Security Headers"
_DISCLOSURE = "Information Disclosure"
_COOKIES = "Cookies"
_EXPOSURE = "Exposure"

VULN_SIGNATURES: Dict[str, List[VulnSignature]] = {
    _HEADERS: [
        VulnSignature("Missing Security Headers", "Missing Content-Security-Policy header",
                      Severity.LOW, "missing_header", "content-security-policy", 90),
        VulnSignature("Missing Security Headers", "Missing X-Frame-Options header",
                      Severity.LOW, "missing_header", "x-frame-options", 85),
        VulnSignature("Missing Security Headers", "Missing X-Content-Type-Options header",
                      Severity.LOW, "missing_header", "x-content-type-options", 85),
        VulnSignature("Missing Security Headers", "Missing Strict-Transport-Security header on HTTPS",
                      Severity.MEDIUM, "missing_hsts", None, 90),
    ],
    _DISCLOSURE: [
        VulnSignature("Information Disclosure", "Version information disclosed in HTTP headers",
                      Severity.LOW, "version_disclosure", ("server", "x-powered-by", "x-aspnet-version"), 90),
        VulnSignature("Information Disclosure", "Stack trace or debug output exposed in response",
                      Severity.MEDIUM, "body_pattern",
                      r"Traceback \(most recent call last\)|<b>Fatal error</b>:|at [\w$.]+\([\w]+\.java:\d+\)", 75),
    ],
    _COOKIES: [
        VulnSignature("Insecure Cookie", "Cookies set without secure flag",
                      Severity.MEDIUM, "cookie_flag", "secure", 85),
        VulnSignature("Insecure Cookie", "Cookies set without HttpOnly flag",
                      Severity.LOW, "cookie_flag", "httponly", 80),
    ],
    _EXPOSURE: [
        VulnSignature("Directory Listing", "Directory listing enabled",
                      Severity.LOW, "body_pattern", r"<title>\s*Index of /|Directory listing for /", 90),
        VulnSignature("CORS Misconfiguration", "Access-Control-Allow-Origin allows any origin",
                      Severity.MEDIUM, "header_value", ("access-control-allow-origin", r"^\*$"), 85),
    ],
}


DEFAULT_CATALOG = SignatureCatalog(
    technologies=TECH_SIGNATURES,
    coverage_rules=COVERAGE_RULES,
    parameters=PARAMETER_SIGNATURES,
    vulnerabilities=VULN_SIGNATURES,
)
