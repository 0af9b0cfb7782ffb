#!/usr/bin/env python3
"""BeginAI Production Health Check
Validates that production features are properly configured and ready for
deployment: environment variables, core files, feature routes, security
settings and build configuration.

Exits with status 1 when any critical issue is found, 0 otherwise.

Usage:
  python scripts/health_check.py
"""
import os
import re
import sys
from pathlib import Path

from dotenv import dotenv_values

ROOT_DIR = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT_DIR))

from utils.config import REQUIRED_FIREBASE_VARS, OPTIONAL_VARS  # noqa: E402

ENV_LOCAL = ".env.local"

CRITICAL_FILES = [
    "main.py",
    "setup.py",
    "utils/firebase_app.py",
    "utils/auth_middleware.py",
    "services/draft_service.py",
    "services/admin_service.py",
    "services/news_service.py",
]

FEATURE_ROUTES = [
    ("Admin Drafts", "/admin/drafts"),
    ("AI News", "/news"),
    ("Badges", "/badges"),
]

SAFE_EXTRAS = ["test"]

COLORS = {
    "reset": "\x1b[0m",
    "bright": "\x1b[1m",
    "red": "\x1b[31m",
    "green": "\x1b[32m",
    "yellow": "\x1b[33m",
    "blue": "\x1b[34m",
    "magenta": "\x1b[35m",
    "cyan": "\x1b[36m",
}

STRIP_PATTERN = re.compile(r"[\r\n%]")


def color(name, text):
    return f"{COLORS[name]}{text}{COLORS['reset']}"


def load_env_local(root, environ):
    """Copy REACT_APP_* keys from .env.local into environ."""
    env_path = Path(root) / ENV_LOCAL
    if not env_path.exists():
        return environ

    for key, value in dotenv_values(env_path).items():
        if key and value and key.startswith("REACT_APP_"):
            environ[key] = STRIP_PATTERN.sub("", value)
    return environ


class HealthCheck:
    def __init__(self, root=None, environ=None, out=None):
        self.root = Path(root) if root else ROOT_DIR
        self.environ = load_env_local(self.root, dict(os.environ if environ is None else environ))
        self.out = out or sys.stdout
        self.results = {
            "core": {},
            "features": {},
            "security": {},
            "performance": {},
            "files": {},
        }
        self.warnings = []
        self.critical_issues = []

    def say(self, text=""):
        print(text, file=self.out)

    def run_all_checks(self):
        self.say(color("cyan", "🏥 BeginAI Production Health Check"))
        self.say("=" * 60)

        self.check_environment_variables()
        self.check_core_files()
        self.check_feature_configuration()
        self.check_security_settings()
        self.check_build_configuration()

        return self.generate_report()

    def check_environment_variables(self):
        self.say(color("blue", "\n🔧 Checking Environment Variables..."))

        missing_required = [name for name in REQUIRED_FIREBASE_VARS if not self.environ.get(name)]
        if missing_required:
            self.critical_issues.append({
                "category": "Environment",
                "message": f"Missing required environment variables: {', '.join(missing_required)}",
            })
            self.say(color("red", f"❌ Missing required: {', '.join(missing_required)}"))
        else:
            self.say(color("green", "✅ All required Firebase variables configured"))

        configured_optional = [name for name in OPTIONAL_VARS if self.environ.get(name)]
        missing_optional = [name for name in OPTIONAL_VARS if not self.environ.get(name)]

        self.say(color("green", f"✅ Configured optional: {len(configured_optional)}/{len(OPTIONAL_VARS)}"))
        if missing_optional:
            self.say(color("yellow", f"⚠️  Missing optional: {', '.join(missing_optional)}"))

        self.results["core"]["environment"] = {
            "required": len(REQUIRED_FIREBASE_VARS) - len(missing_required),
            "optional": len(configured_optional),
            "missing": len(missing_required) + len(missing_optional),
        }

    def check_core_files(self):
        self.say(color("blue", "\n📁 Checking Core Files..."))

        missing_files = [f for f in CRITICAL_FILES if not (self.root / f).exists()]
        if missing_files:
            self.critical_issues.append({
                "category": "Files",
                "message": f"Missing critical files: {', '.join(missing_files)}",
            })
            self.say(color("red", f"❌ Missing files: {', '.join(missing_files)}"))
        else:
            self.say(color("green", "✅ All critical files present"))

        self.results["files"] = {
            "critical": len(CRITICAL_FILES) - len(missing_files),
            "missing": len(missing_files),
        }

    def check_feature_configuration(self):
        self.say(color("blue", "\n✨ Checking Feature Configuration..."))

        main_path = self.root / "main.py"
        if not main_path.exists():
            return

        main_source = main_path.read_text(encoding="utf-8")
        for name, route in FEATURE_ROUTES:
            enabled = f"route('{route}'" in main_source or f'route("{route}"' in main_source
            if enabled:
                self.say(color("green", f"✅ {name} route enabled"))
            else:
                self.warnings.append({
                    "category": "Features",
                    "message": f"{name} route appears to be disabled or missing",
                })
                self.say(color("yellow", f"⚠️  {name} route disabled"))

            self.results["features"][name.lower().replace(" ", "_")] = {
                "enabled": enabled,
                "route": route,
            }

    def check_security_settings(self):
        self.say(color("blue", "\n🛡️  Checking Security Settings..."))

        node_env = self.environ.get("NODE_ENV")
        is_production = node_env == "production"
        if is_production:
            self.say(color("green", "✅ Running in production mode"))
        else:
            self.say(color("yellow", f"⚠️  Running in {node_env or 'development'} mode"))

        source_maps_disabled = self.environ.get("GENERATE_SOURCEMAP") == "false"
        if is_production and source_maps_disabled:
            self.say(color("green", "✅ Source maps disabled for production"))
        elif is_production:
            self.warnings.append({
                "category": "Security",
                "message": "Source maps should be disabled in production (set GENERATE_SOURCEMAP=false)",
            })
            self.say(color("yellow", "⚠️  Source maps enabled in production"))

        admin_emails_configured = bool(self.environ.get("REACT_APP_ADMIN_EMAILS"))

        self.results["security"] = {
            "production_mode": is_production,
            "source_maps_disabled": source_maps_disabled,
            "admin_emails_configured": admin_emails_configured,
        }

    def check_build_configuration(self):
        self.say(color("blue", "\n⚡ Checking Build Configuration..."))

        setup_path = self.root / "setup.py"
        if setup_path.exists():
            setup_source = setup_path.read_text(encoding="utf-8")
            available = [extra for extra in SAFE_EXTRAS if f"'{extra}'" in setup_source or f'"{extra}"' in setup_source]
            self.say(color("green", f"✅ Install extras available: {len(available)}/{len(SAFE_EXTRAS)}"))
            self.results["performance"] = {"extras_available": available}

    def generate_report(self):
        self.say(color("cyan", "\n📊 HEALTH CHECK SUMMARY"))
        self.say("=" * 60)

        total_issues = len(self.critical_issues) + len(self.warnings)
        if self.critical_issues:
            status = "CRITICAL"
        elif len(self.warnings) > 3:
            status = "WARNING"
        else:
            status = "HEALTHY"

        status_color = {"CRITICAL": "red", "WARNING": "yellow"}.get(status, "green")
        self.say(color(status_color, f"Overall Status: {status}"))
        self.say(f"Total Issues: {total_issues} ({len(self.critical_issues)} critical, {len(self.warnings)} warnings)")

        if self.critical_issues:
            self.say(color("red", "\n🚨 CRITICAL ISSUES (Must fix before launch):"))
            for index, issue in enumerate(self.critical_issues, 1):
                self.say(f"{index}. [{issue['category']}] {issue['message']}")

        if self.warnings:
            self.say(color("yellow", "\n⚠️  WARNINGS (Recommended fixes):"))
            for index, warning in enumerate(self.warnings, 1):
                self.say(f"{index}. [{warning['category']}] {warning['message']}")

        if status == "HEALTHY":
            self.say(color("green", "\n🎉 All systems ready for production deployment!"))

        self.say(color("cyan", "\nNext steps:"))
        if self.critical_issues:
            self.say("1. Fix all critical issues above")
            self.say("2. Re-run health check with: python scripts/health_check.py")
        else:
            self.say("1. Review and address warnings if needed")
            self.say("2. Test all features in staging environment")
            self.say("3. Deploy to production")

        self.say("=" * 60)

        return {
            "status": status,
            "criticalIssues": self.critical_issues,
            "warnings": self.warnings,
            "results": self.results,
        }


def main(root=None, environ=None):
    try:
        report = HealthCheck(root=root, environ=environ).run_all_checks()
    except Exception as e:
        print(color("red", f"❌ Health check failed: {e}"), file=sys.stderr)
        return 1
    return 1 if report["criticalIssues"] else 0


if __name__ == "__main__":
    sys.exit(main())
