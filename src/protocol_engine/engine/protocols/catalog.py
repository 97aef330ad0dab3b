"""Built-in protocol catalog and loading of extra definitions from JSON."""

from __future__ import annotations

import json
from pathlib import Path

from protocol_engine.engine.errors import CatalogError

from .models import (
    ContextKey,
    ErrorTrigger,
    EventTrigger,
    FileExists,
    PhraseTrigger,
    Priority,
    ProtocolDefinition,
    ProtocolMetadata,
    ProtocolStep,
    StateTrigger,
)

REPO_UPDATE = ProtocolDefinition(
    id="repo-update",
    name="Repository Update Protocol",
    description="Complete repository update workflow with git operations, testing, and documentation",
    triggers=(
        PhraseTrigger("update repo"),
        PhraseTrigger("commit changes"),
        PhraseTrigger("push to github"),
        PhraseTrigger("update repository"),
    ),
    steps=(
        ProtocolStep(
            id="status",
            name="Check Git Status",
            description="Review current repository state and modified files",
            command="git:git_status()",
            validation="Review modified files and ensure all changes are intended",
        ),
        ProtocolStep(
            id="tests",
            name="Run Tests",
            description="Execute test suite to ensure code quality",
            command='system:system_exec("npm test")',
            validation="All tests pass successfully",
            conditional=ContextKey("includeTests"),
        ),
        ProtocolStep(
            id="add",
            name="Stage Changes",
            description="Add all changes to git staging area",
            command='git:git_add(files=["."])',
            validation="Changes staged for commit",
        ),
        ProtocolStep(
            id="commit",
            name="Commit Changes",
            description="Create git commit with descriptive message",
            command='git:git_commit(message="${commit_message}")',
            validation="Commit created successfully",
        ),
        ProtocolStep(
            id="push",
            name="Push to Remote",
            description="Push commits to remote repository",
            command="git:git_push()",
            validation="Changes pushed to remote successfully",
        ),
        ProtocolStep(
            id="summary",
            name="Create Summary",
            description="Generate summary of changes for documentation",
            command="brain-manager:generate_summary(changes=${session_changes})",
            validation="Summary created and saved",
        ),
    ),
    metadata=ProtocolMetadata(
        priority=Priority.MEDIUM,
        category="development",
        tags=frozenset({"git", "repository", "version-control"}),
    ),
)

SESSION_INIT = ProtocolDefinition(
    id="session-init",
    name="Session Initialization Protocol",
    description="Startup sequence for a new assistant session",
    triggers=(
        PhraseTrigger("start session"),
        PhraseTrigger("initialize"),
        EventTrigger("new_conversation"),
    ),
    steps=(
        ProtocolStep(
            id="brain_init",
            name="Initialize Brain System",
            description="Load Brain system and user preferences",
            command="brain:brain_init()",
            validation="Brain system initialized successfully",
        ),
        ProtocolStep(
            id="bag_of_tricks",
            name="Load Bag of Tricks",
            description="Load quick reference for when stuck",
            command='brain:state_get("bag_of_tricks", category="system")',
            validation="Bag of tricks reference loaded",
        ),
        ProtocolStep(
            id="locations",
            name="Load Critical Locations",
            description="Load system paths and file locations",
            command='brain:state_get("critical_locations", category="system")',
            validation="All critical locations loaded",
        ),
        ProtocolStep(
            id="project",
            name="Restore Project Context",
            description="Load last active project context",
            command='brain:state_get("last_project", category="session")',
            validation="Project context restored or new project selected",
        ),
        ProtocolStep(
            id="captain_log",
            name="Check Captain's Log",
            description="Load today's Captain's Log if available",
            command="filesystem:read_file(\"${vault_path}/Captain's log ${today}.md\")",
            validation="Today's context loaded",
            conditional=FileExists(),
        ),
        ProtocolStep(
            id="reminders",
            name="Check Reminders",
            description="Review any pending reminders",
            command="brain-manager:check_reminders()",
            validation="Reminders reviewed",
        ),
    ),
    metadata=ProtocolMetadata(
        priority=Priority.CRITICAL,
        category="system",
        tags=frozenset({"initialization", "startup", "session"}),
    ),
)

AUTO_CONTINUATION = ProtocolDefinition(
    id="auto-continuation",
    name="Auto-Continuation Protocol",
    description="Generate continuation note after multiple continues",
    triggers=(
        EventTrigger("second_continue_detected"),
        StateTrigger("max_prompt_length_twice"),
        PhraseTrigger("create continuation note"),
    ),
    steps=(
        ProtocolStep(
            id="analyze",
            name="Analyze Session Context",
            description="Gather all work done in current session",
            validation="Context analyzed and summarized",
        ),
        ProtocolStep(
            id="generate",
            name="Generate Continuation Note",
            description="Create comprehensive continuation note with all context",
            command=(
                "brain-manager:generate_summary(changes=${session_changes}, "
                'notes=["Continue from: ${last_action}"])'
            ),
            validation="Continuation note generated",
        ),
        ProtocolStep(
            id="save_state",
            name="Save to State Table",
            description="Persist continuation data for next session",
            command='brain:state_set("continuation_note", ${continuation_data}, category="session")',
            validation="State saved successfully",
        ),
        ProtocolStep(
            id="create_artifact",
            name="Create User Artifact",
            description="Create visible artifact for user to copy",
            validation="Artifact created and visible to user",
        ),
        ProtocolStep(
            id="save_obsidian",
            name="Save to Obsidian",
            description="Create permanent note in Obsidian vault",
            command=(
                'brain:obsidian_note("create", title="Continuation ${today}", '
                "content=${continuation_content})"
            ),
            validation="Obsidian note created",
        ),
    ),
    metadata=ProtocolMetadata(
        priority=Priority.HIGH,
        category="session",
        tags=frozenset({"continuation", "context", "handover"}),
    ),
)

ERROR_RECOVERY = ProtocolDefinition(
    id="error-recovery",
    name="Error Recovery Protocol",
    description="Systematic error handling and recovery",
    triggers=(
        ErrorTrigger("tool error"),
        ErrorTrigger("file not found"),
        ErrorTrigger("permission denied"),
        ErrorTrigger("command failed"),
    ),
    steps=(
        ProtocolStep(
            id="diagnose",
            name="Diagnose Error",
            description="Identify error type and potential causes",
            validation="Error diagnosed and categorized",
        ),
        ProtocolStep(
            id="check_bag",
            name="Check Bag of Tricks",
            description="Look for relevant troubleshooting steps",
            command='brain:state_get("bag_of_tricks", category="system")',
            validation="Troubleshooting steps identified",
        ),
        ProtocolStep(
            id="attempt_fix",
            name="Attempt Automatic Fix",
            description="Try to resolve error automatically",
            validation="Fix attempted",
        ),
        ProtocolStep(
            id="fallback",
            name="Execute Fallback Strategy",
            description="Use alternative approach if fix failed",
            validation="Fallback executed",
            conditional=ContextKey("fix_failed"),
        ),
        ProtocolStep(
            id="report",
            name="Report to User",
            description="Explain error and resolution to user",
            validation="User informed of status",
        ),
    ),
    metadata=ProtocolMetadata(
        priority=Priority.HIGH,
        category="system",
        tags=frozenset({"error", "recovery", "troubleshooting"}),
    ),
)

FIND_LOCATION = ProtocolDefinition(
    id="find-location",
    name="Find Location Protocol",
    description="Systematic approach to finding files and locations",
    triggers=(
        PhraseTrigger("where is"),
        PhraseTrigger("find file"),
        PhraseTrigger("locate"),
        ErrorTrigger("not found"),
    ),
    steps=(
        ProtocolStep(
            id="check_state",
            name="Check State Table",
            description="Look for location in critical_locations",
            command='brain:state_get("critical_locations", category="system")',
            validation="State table checked",
        ),
        ProtocolStep(
            id="smart_help",
            name="Use Smart Help",
            description="Get context-aware location suggestions",
            command='smart-help:smart_help(context="looking for ${target}")',
            validation="Smart help suggestions received",
        ),
        ProtocolStep(
            id="arch_search",
            name="Search Architecture Docs",
            description="Look in architectural documentation",
            command='mcp-architecture:arch_find_document("${target}")',
            validation="Architecture docs searched",
        ),
        ProtocolStep(
            id="file_search",
            name="Search Filesystem",
            description="Perform filesystem search if needed",
            command='filesystem:search_files(path="${code_root}", pattern="${target}")',
            validation="Filesystem searched",
            conditional=ContextKey("not_found"),
        ),
        ProtocolStep(
            id="update_state",
            name="Update State Table",
            description="Save found location for future use",
            command='brain:state_set("critical_locations", ${updated_locations}, category="system")',
            validation="Location saved for future reference",
        ),
    ),
    metadata=ProtocolMetadata(
        priority=Priority.MEDIUM,
        category="system",
        tags=frozenset({"search", "location", "discovery"}),
    ),
)

CREATE_PROJECT = ProtocolDefinition(
    id="create-project",
    name="Create New Project Protocol",
    description="Complete project creation with Git, testing, and Brain integration",
    triggers=(
        PhraseTrigger("create project"),
        PhraseTrigger("new project"),
        PhraseTrigger("start project"),
    ),
    steps=(
        ProtocolStep(
            id="create_structure",
            name="Create Project Structure",
            description="Set up directory and initial files",
            command=(
                'brain-manager:create_project(projectName="${project_name}", '
                'projectType="${project_type}")'
            ),
            validation="Project structure created",
        ),
        ProtocolStep(
            id="init_git",
            name="Initialize Git Repository",
            description="Create git repo and initial commit",
            command='git:git_init(path="${code_root}/${project_name}")',
            validation="Git repository initialized",
        ),
        ProtocolStep(
            id="create_github",
            name="Create GitHub Repository",
            description="Create remote repository on GitHub",
            command='system:system_exec("gh repo create ${project_name} --public")',
            validation="GitHub repository created",
        ),
        ProtocolStep(
            id="update_architecture",
            name="Update Architecture Index",
            description="Add project to Master Architecture Index",
            validation="Architecture documentation updated",
        ),
        ProtocolStep(
            id="update_brain",
            name="Register in Brain",
            description="Add project to Brain memory",
            command='brain:brain_remember("project_${project_name}", ${project_data})',
            validation="Project registered in Brain",
        ),
        ProtocolStep(
            id="create_readme",
            name="Create Documentation",
            description="Generate README and initial docs",
            validation="Documentation created",
        ),
    ),
    metadata=ProtocolMetadata(
        priority=Priority.MEDIUM,
        category="development",
        tags=frozenset({"project", "creation", "setup"}),
    ),
)

TODO_MANAGEMENT = ProtocolDefinition(
    id="todo-management",
    name="Todo Management Protocol",
    description="Systematic task management and tracking",
    triggers=(
        PhraseTrigger("add todo"),
        PhraseTrigger("check todos"),
        PhraseTrigger("what should i do"),
        PhraseTrigger("task list"),
    ),
    steps=(
        ProtocolStep(
            id="check_current",
            name="Check Current Todos",
            description="Review existing tasks and priorities",
            command='todo-manager:todo_list(project="${current_project}")',
            validation="Current todos reviewed",
        ),
        ProtocolStep(
            id="add_new",
            name="Add New Todo",
            description="Create new task if needed",
            command=(
                'todo-manager:todo_add(project="${project}", title="${task_title}", '
                'priority="${priority}")'
            ),
            validation="New todo added",
            conditional=ContextKey("adding_todo"),
        ),
        ProtocolStep(
            id="prioritize",
            name="Review Priorities",
            description="Ensure tasks are properly prioritized",
            command="todo-manager:todo_summary()",
            validation="Priorities reviewed",
        ),
        ProtocolStep(
            id="suggest_next",
            name="Suggest Next Action",
            description="Recommend what to work on next",
            validation="Next action suggested",
        ),
    ),
    metadata=ProtocolMetadata(
        priority=Priority.LOW,
        category="productivity",
        tags=frozenset({"todo", "tasks", "planning"}),
    ),
)

BUILTIN_PROTOCOLS: tuple[ProtocolDefinition, ...] = (
    REPO_UPDATE,
    SESSION_INIT,
    AUTO_CONTINUATION,
    ERROR_RECOVERY,
    FIND_LOCATION,
    CREATE_PROJECT,
    TODO_MANAGEMENT,
)


def load_catalog_file(path: Path) -> list[ProtocolDefinition]:
    """Parse a JSON array of protocol definitions.

    Raises:
        CatalogError: the file is unreadable, not a JSON array, or holds an
            invalid definition.
    """

    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise CatalogError(f"Cannot read protocol catalog {path}: {e}") from e
    if not isinstance(raw, list):
        raise CatalogError(f"Protocol catalog {path} must contain a JSON array")

    definitions: list[ProtocolDefinition] = []
    for item in raw:
        if not isinstance(item, dict):
            raise CatalogError(f"Protocol catalog {path} contains a non-object entry")
        definitions.append(ProtocolDefinition.from_json(item))
    return definitions
