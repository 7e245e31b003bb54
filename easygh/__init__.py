"""
easygh manages GitHub Actions secrets and variables across many repositories.

Secrets, variables and the repositories they are written to are described by a
YAML configuration file. Secrets are encrypted locally with each repository's
(or environment's) public key before they are sent to GitHub.

Configure a token with write access to Actions secrets and variables:

\b
    $ export GH_TOKEN_WITH_ACTIONS_WRITE="ghp_..."

Describe the repositories and values in a configuration file:

\b
    github:
      owner: example-org
      repos: [service-a, service-b]
    repository_secrets:
      DB_PASSWORD: "s3cr3t!"
    environment_secrets:
      production:
        DEPLOY_KEY: "..."
    repository_variables:
      LOG_LEVEL: info

Preview the changes, then apply them:

\b
    $ easygh sync --config config.yaml --dry-run
    $ easygh sync --config config.yaml

Environments must already exist in each repository before environment
secrets or variables can be written to them.
"""

__version__ = '1.0.0'
