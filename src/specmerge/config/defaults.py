"""
specmerge.config.defaults - Default configuration values.
"""

DEFAULT_CONFIG = {
    "project": {
        "name": "",
        # Directory holding specs/ and changes/
        "root": "openspec",
    },
    "directories": {
        "specs": "specs",
        "changes": "changes",
    },
    "keywords": {
        "requirements_headers": ["Requirements", "需求"],
        "requirement_keywords": ["Requirement", "需求"],
        "normative": ["SHALL", "MUST", "必须", "禁止"],
        "added": ["ADDED Requirements", "新增需求"],
        "modified": ["MODIFIED Requirements", "修改需求"],
        "removed": ["REMOVED Requirements", "移除需求"],
        "renamed": ["RENAMED Requirements", "重命名需求"],
    },
    "merge": {
        # "preserve" keeps the base header keyword on rename, "delta" uses the TO line's
        "rename_header_style": "preserve",
    },
    "validation": {
        "strict": False,
        "min_purpose_length": 50,
        "max_requirement_text_length": 500,
        # proposal.md Why section bounds (warnings only)
        "min_why_length": 50,
        "max_why_length": 1000,
    },
    "archive": {
        "archive_dir": "archive",
        "date_format": "%Y-%m-%d",
        "spec_filename": "spec.md",
    },
}
