# Names and help strings of every series the exporter publishes.

REPO_STARS = "github_repo_stars"
REPO_FORKS = "github_repo_forks"
REPO_OPEN_ISSUES = "github_repo_open_issues"
REPO_WATCHERS = "github_repo_watchers"
REPO_SIZE = "github_repo_size_kilobytes"
REPO_ARCHIVED = "github_repo_archived"

ACTIONS_BILLABLE = "github_actions_billable_seconds"
WORKFLOW_LAST_RUN_DURATION = "github_workflow_last_run_duration_seconds"
WORKFLOW_LAST_RUN_SUCCESS = "github_workflow_last_run_success"
WORKFLOW_LAST_RUN_TIMESTAMP = "github_workflow_last_run_timestamp_seconds"

ORG_PUBLIC_REPOS = "github_org_public_repos"
ORG_FOLLOWERS = "github_org_followers"
ORG_ACTIONS_TOTAL_MINUTES_USED = "github_org_billing_actions_total_minutes_used"
ORG_ACTIONS_TOTAL_PAID_MINUTES_USED = "github_org_billing_actions_total_paid_minutes_used"
ORG_ACTIONS_INCLUDED_MINUTES = "github_org_billing_actions_included_minutes"
ORG_ACTIONS_MINUTES_USED_BREAKDOWN = "github_org_billing_actions_minutes_used_breakdown"
ORG_PACKAGES_TOTAL_GIGABYTES_BANDWIDTH_USED = "github_org_billing_packages_total_gigabytes_bandwidth_used"
ORG_PACKAGES_TOTAL_PAID_GIGABYTES_BANDWIDTH_USED = "github_org_billing_packages_total_paid_gigabytes_bandwidth_used"
ORG_PACKAGES_INCLUDED_GIGABYTES_BANDWIDTH = "github_org_billing_packages_included_gigabytes_bandwidth"
ORG_SHARED_STORAGE_DAYS_LEFT = "github_org_billing_shared_storage_days_left_in_billing_cycle"
ORG_SHARED_STORAGE_ESTIMATED_PAID = "github_org_billing_shared_storage_estimated_paid_storage_for_month"
ORG_SHARED_STORAGE_ESTIMATED = "github_org_billing_shared_storage_estimated_storage_for_month"

TARGET_STALE = "github_exporter_target_stale"
TARGET_LAST_SUCCESS = "github_exporter_target_last_success_timestamp_seconds"
TARGET_LAST_ERROR = "github_exporter_target_last_error_timestamp_seconds"
TARGET_SAMPLES = "github_exporter_target_samples"
RATE_LIMIT_REMAINING = "github_exporter_rate_limit_remaining"
RATE_LIMIT_RESET = "github_exporter_rate_limit_reset_timestamp_seconds"

HELP = {
    REPO_STARS: "Number of stargazers of the repository",
    REPO_FORKS: "Number of forks of the repository",
    REPO_OPEN_ISSUES: "Number of open issues and pull requests of the repository",
    REPO_WATCHERS: "Number of watchers (subscribers) of the repository",
    REPO_SIZE: "Size of the repository in kilobytes",
    REPO_ARCHIVED: "Whether the repository is archived",
    ACTIONS_BILLABLE: "Github Actions billable time of the workflow in the current billing cycle",
    WORKFLOW_LAST_RUN_DURATION: "Duration of the latest completed workflow run",
    WORKFLOW_LAST_RUN_SUCCESS: "Whether the latest completed workflow run concluded successfully",
    WORKFLOW_LAST_RUN_TIMESTAMP: "Creation time of the latest workflow run",
    ORG_PUBLIC_REPOS: "Number of public repositories of the organisation",
    ORG_FOLLOWERS: "Number of followers of the organisation",
    ORG_ACTIONS_TOTAL_MINUTES_USED: "Github Actions organisation billing total minutes used",
    ORG_ACTIONS_TOTAL_PAID_MINUTES_USED: "Github Actions organisation billing total paid minutes used",
    ORG_ACTIONS_INCLUDED_MINUTES: "Github Actions organisation billing included minutes",
    ORG_ACTIONS_MINUTES_USED_BREAKDOWN: "Github Actions organisation billing minutes breakdown",
    ORG_PACKAGES_TOTAL_GIGABYTES_BANDWIDTH_USED: "Github Packages organisation billing total gigabytes bandwidth used",
    ORG_PACKAGES_TOTAL_PAID_GIGABYTES_BANDWIDTH_USED: "Github Packages organisation billing total paid gigabytes bandwidth used",
    ORG_PACKAGES_INCLUDED_GIGABYTES_BANDWIDTH: "Github Packages organisation billing included gigabytes bandwidth",
    ORG_SHARED_STORAGE_DAYS_LEFT: "Github Shared Storage organisation billing days left in billing cycle",
    ORG_SHARED_STORAGE_ESTIMATED_PAID: "Github Shared Storage organisation billing estimated paid storage for month",
    ORG_SHARED_STORAGE_ESTIMATED: "Github Shared Storage organisation billing estimated storage for month",
    TARGET_STALE: "Whether the most recent fetch of the target failed",
    TARGET_LAST_SUCCESS: "Time of the last successful fetch of the target",
    TARGET_LAST_ERROR: "Time of the last failed fetch of the target",
    TARGET_SAMPLES: "Number of cached samples of the target",
    RATE_LIMIT_REMAINING: "GitHub API calls remaining before the rate limit resets",
    RATE_LIMIT_RESET: "Time at which the GitHub API rate limit resets",
}
