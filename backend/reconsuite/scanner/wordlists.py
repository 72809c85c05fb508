# reconsuite/scanner/wordlists.py
"""
Static wordlists for subdomain brute-force and content discovery.

Each tier extends the one below it:
    default ⊂ common ⊂ large
"""

from __future__ import annotations

import re
from typing import Dict, List, Optional, Sequence

from ..errors import ValidationError
from .base import WordlistTier

PREFIX_RE = re.compile(r"^[a-z0-9_]([a-z0-9_.-]*[a-z0-9_])?$")


def _unique(*lists: Sequence[str]) -> List[str]:
    seen = set()
    out: List[str] = []
    for items in lists:
        for item in items:
            if item not in seen:
                seen.add(item)
                out.append(item)
    return out


# ── Subdomain prefixes ──

_SUBDOMAIN_DEFAULT = [
    "www", "mail", "ftp", "admin", "blog", "shop", "dev",
    "api", "test", "staging", "app", "support", "secure",
    "vpn", "cdn", "media", "static", "forum", "ns1", "ns2",
]

_SUBDOMAIN_COMMON_EXTRA = [
    "portal", "intranet", "remote", "server", "services", "store", "web", "cloud",
    "exchange", "internal", "corp", "docs", "download", "downloads", "email", "host",
    "login", "manage", "management", "mobile", "new", "news", "old", "pop", "pop3",
    "private", "repository", "search", "smtp", "social", "sql", "ssh", "staff", "svn",
    "ww1", "ww2", "www1", "www2", "git", "beta", "demo",
]

_SUBDOMAIN_LARGE_EXTRA = [
    "accounting", "accounts", "analytics", "apollo", "assets", "auth", "authentication",
    "backup", "backups", "billing", "calendar", "chat", "cms", "community", "config",
    "connect", "contact", "control", "core", "cp", "crm", "customer", "customers", "dashboard",
    "data", "database", "db", "debug", "desktop", "dev1", "dev2", "development", "devops",
    "director", "directory", "dns", "domain", "domains", "drupal", "edu", "events", "example",
    "extranet", "feed", "file", "files", "finance", "forms", "gateway", "groups", "help",
    "home", "hr", "httpd", "id", "image", "images", "imap", "img", "info", "integration",
    "internet", "ip", "ipv6", "jenkins", "jira", "lab", "labs", "library", "link", "lists",
    "localhost", "log", "logs", "lyncdiscover", "mail2", "mailgate", "manager", "marketing",
    "member", "members", "mercury", "monitor", "monitoring", "mssql", "mysql", "name", "nat",
    "new-staff", "newmail", "newsletter", "ns3", "ns4", "office", "online", "operations", "oracle",
    "order", "orders", "owa", "partners", "password", "payments", "payroll", "pgsql", "phpmyadmin",
    "podcast", "preprod", "pre-prod", "preview", "print", "priv", "prod", "production", "profiles",
    "project", "projects", "proxy", "public", "qa", "redirect", "reports", "research", "resources",
    "restricted", "reviews", "root", "router", "rss", "s1", "s2", "s3", "sales", "sample", "samples",
    "sandbox", "sc", "secure1", "secure2", "security", "seo", "server1", "server2",
    "service", "sftp", "sharepoint", "shop2", "signup", "site", "siteadmin", "sitebuilder",
    "sites", "sms", "solr", "sso", "status", "storage", "store2", "streaming", "support2",
    "surveys", "sysadmin", "system", "teamcity", "temp", "terraform", "tftp", "thunder", "ticket",
    "tickets", "time", "tools", "tracking", "traffic", "training", "translate", "traveler",
    "ts", "update", "updates", "upload", "uploads", "user", "users", "video", "videos", "view",
    "virtual", "vm", "voip", "vpn2", "weather", "webadmin", "webconf", "webdisk", "webmail",
    "webmaster", "wordpress", "workspace", "wp", "www3", "www4", "gitlab",
    "github", "confluence", "wiki", "grafana", "prometheus", "kibana", "elastic",
    "splunk", "nagios", "zabbix", "kubernetes", "k8s", "redis", "memcached", "mongodb",
]

SUBDOMAIN_WORDLISTS: Dict[WordlistTier, List[str]] = {
    WordlistTier.DEFAULT: _unique(_SUBDOMAIN_DEFAULT),
    WordlistTier.COMMON: _unique(_SUBDOMAIN_DEFAULT, _SUBDOMAIN_COMMON_EXTRA),
    WordlistTier.LARGE: _unique(_SUBDOMAIN_DEFAULT, _SUBDOMAIN_COMMON_EXTRA, _SUBDOMAIN_LARGE_EXTRA),
}


# ── Content paths ──

_CONTENT_DEFAULT = [
    "/admin", "/login", "/api", "/backup", "/config", "/dashboard", "/dev", "/docs",
    "/images", "/includes", "/js", "/log", "/logs", "/old", "/private", "/robots.txt",
    "/sitemap.xml", "/temp", "/test", "/uploads", "/v1", "/v2", "/wp-admin", "/wp-content",
    "/administrator", "/.git", "/.env", "/phpinfo.php", "/info.php", "/server-status",
    "/console", "/api/v1", "/api/users", "/backup.zip", "/config.json", "/debug",
    "/.htpasswd", "/assets",
]

_CONTENT_COMMON_EXTRA = [
    "/.git/HEAD", "/.svn", "/.DS_Store", "/.well-known/security.txt", "/.htaccess",
    "/account", "/actuator", "/actuator/health", "/admin/login", "/api/v2", "/api/docs",
    "/app", "/archive", "/auth", "/bin", "/cache", "/cgi-bin", "/client", "/cms", "/conf",
    "/crossdomain.xml", "/css", "/data", "/db", "/default", "/demo", "/download",
    "/downloads", "/dump.sql", "/error", "/export", "/files", "/fonts", "/graphql", "/health",
    "/home", "/img", "/import", "/include", "/index.php", "/install", "/internal", "/lib",
    "/media", "/metrics", "/monitor", "/panel", "/phpmyadmin", "/portal", "/public",
    "/register", "/reports", "/rest", "/scripts", "/search", "/secret", "/server-info",
    "/setup", "/shell", "/signin", "/signup", "/sql", "/src", "/static", "/stats", "/status",
    "/storage", "/swagger", "/swagger.json", "/swagger-ui.html", "/system", "/tmp",
    "/tools", "/upload", "/user", "/users", "/vendor", "/web.config", "/webmail",
    "/wp-login.php", "/wp-json", "/xmlrpc.php",
]

_CONTENT_LARGE_EXTRA = [
    "/.aws/credentials", "/.bash_history", "/.circleci/config.yml", "/.dockerignore",
    "/.env.backup", "/.env.local", "/.env.production", "/.git/config", "/.gitignore",
    "/.gitlab-ci.yml", "/.idea", "/.npmrc", "/.travis.yml", "/.vscode", "/_admin",
    "/_debug", "/_profiler", "/access.log", "/admin.php", "/admin/config", "/adminer.php",
    "/api/admin", "/api/config", "/api/health", "/api/internal", "/api/private",
    "/api/status", "/api/swagger.json", "/api/v3", "/application.yml", "/apps",
    "/assets/js", "/awstats", "/backend", "/backups", "/beta", "/blog", "/build",
    "/changelog.txt", "/composer.json", "/composer.lock", "/config.php", "/config.yml",
    "/configuration.php", "/console/login", "/contact", "/core", "/cron", "/database",
    "/database.sql", "/db.sql", "/deploy", "/dev/api", "/devel", "/dist", "/docker-compose.yml",
    "/Dockerfile", "/elmah.axd", "/env", "/error.log", "/errors", "/examples", "/feed",
    "/forum", "/ftp", "/git", "/gulpfile.js", "/heapdump", "/help", "/hidden",
    "/jenkins", "/jmx-console", "/jolokia", "/json", "/kibana", "/LICENSE", "/local",
    "/logs/error.log", "/logout", "/mail", "/manage", "/management", "/manager/html",
    "/Makefile", "/mobile", "/node_modules", "/oauth", "/old-site", "/package.json",
    "/package-lock.json", "/password", "/passwords.txt", "/php.ini", "/phpunit.xml",
    "/pma", "/private/api", "/prod", "/production", "/profile", "/README.md", "/readme.html",
    "/redis", "/release", "/resources", "/restore", "/root", "/rss", "/sandbox",
    "/secrets", "/security", "/server", "/service", "/services", "/settings", "/shop",
    "/site", "/sitemap_index.xml", "/sites", "/sql.zip", "/staging", "/store",
    "/support", "/svn", "/test.php", "/testing", "/themes", "/trace.axd", "/uat",
    "/v3", "/version", "/webadmin", "/webdav", "/wordpress", "/wp-config.php.bak",
    "/wp-includes", "/www", "/yarn.lock",
]

CONTENT_WORDLISTS: Dict[WordlistTier, List[str]] = {
    WordlistTier.DEFAULT: _unique(_CONTENT_DEFAULT),
    WordlistTier.COMMON: _unique(_CONTENT_DEFAULT, _CONTENT_COMMON_EXTRA),
    WordlistTier.LARGE: _unique(_CONTENT_DEFAULT, _CONTENT_COMMON_EXTRA, _CONTENT_LARGE_EXTRA),
}

CONTENT_WORDLIST_DESCRIPTIONS: Dict[WordlistTier, str] = {
    WordlistTier.DEFAULT: "Standard wordlist with the most common paths and sensitive files",
    WordlistTier.COMMON: "Extended wordlist adding framework, API and tooling paths",
    WordlistTier.LARGE: "Comprehensive wordlist adding leaked configs, dumps and admin consoles",
}


def subdomain_prefixes(tier, custom: Optional[Sequence[str]] = None) -> List[str]:
    """Prefix list for a tier; `custom` tier returns the cleaned caller list."""
    tier = WordlistTier.parse(tier, "wordlist")
    if tier == WordlistTier.CUSTOM:
        cleaned = _unique([
            str(p).strip().lower().strip(".") for p in (custom or []) if str(p).strip().strip(".")
        ])
        if not cleaned:
            raise ValidationError("A custom wordlist requires at least one prefix")
        bad = [p for p in cleaned if len(p) > 63 or not PREFIX_RE.match(p)]
        if bad:
            raise ValidationError(f"Invalid subdomain prefix(es): {', '.join(bad[:5])}")
        return cleaned
    return list(SUBDOMAIN_WORDLISTS[tier])


def content_paths(tier) -> List[str]:
    tier = WordlistTier.parse(tier, "wordlist type")
    if tier == WordlistTier.CUSTOM:
        raise ValidationError("Content discovery has no custom wordlist; use default, common or large")
    return list(CONTENT_WORDLISTS[tier])


def describe_content_wordlists() -> List[Dict[str, object]]:
    return [
        {
            "id": tier.value,
            "name": tier.value.capitalize(),
            "count": len(paths),
            "description": CONTENT_WORDLIST_DESCRIPTIONS[tier],
        }
        for tier, paths in CONTENT_WORDLISTS.items()
    ]
