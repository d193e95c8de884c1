# ABOUTME: Discovers bastion hosts and RDS/Redis endpoints with delegated credentials
# ABOUTME: Filters EC2, RDS, and ElastiCache resources by env tag or explicit name

"""Resource discovery for tunnel targets."""

import logging
from collections.abc import Callable
from dataclasses import dataclass

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from bifrost.errors import DiscoveryError
from bifrost.sso.client import DelegatedCredentials

logger = logging.getLogger(__name__)

ENV_TAG = "env"


@dataclass(frozen=True)
class Endpoint:
    """A reachable data-store endpoint behind the bastion."""

    name: str
    address: str
    port: int


def session_for(credentials: DelegatedCredentials, region: str) -> boto3.Session:
    """Create a boto3 session bound to the delegated role credentials."""
    return boto3.Session(
        aws_access_key_id=credentials.access_key_id,
        aws_secret_access_key=credentials.secret_access_key,
        aws_session_token=credentials.session_token,
        region_name=region,
    )


def _env_matches(tags: list[dict], environment: str) -> bool:
    return any(tag.get("Key") == ENV_TAG and environment in (tag.get("Value") or "") for tag in tags or [])


def find_bastion_instance(session: boto3.Session, environment: str) -> str:
    """Return the id of the first running bastion instance tagged for ``environment``."""
    client = session.client("ec2")
    try:
        response = client.describe_instances(
            Filters=[
                {"Name": "tag:Name", "Values": ["*bastion*"]},
                {"Name": "tag:env", "Values": [f"*{environment}*"]},
                {"Name": "instance-state-name", "Values": ["running"]},
            ]
        )
    except (ClientError, BotoCoreError) as e:
        raise DiscoveryError(f"Error retrieving bastion instance ID: {e}") from e

    for reservation in response.get("Reservations", []):
        for instance in reservation.get("Instances", []):
            return instance["InstanceId"]

    raise DiscoveryError(f"no running bastion instance found for environment {environment}")


def find_rds_endpoints(session: boto3.Session, environment: str, name: str | None = None) -> list[Endpoint]:
    """List RDS instances tagged for ``environment``, or the one named ``name``."""
    client = session.client("rds")
    endpoints = []
    try:
        for page in client.get_paginator("describe_db_instances").paginate():
            for db in page.get("DBInstances", []):
                identifier = db["DBInstanceIdentifier"]
                endpoint = db.get("Endpoint")
                if not endpoint:
                    continue
                if name:
                    if identifier != name:
                        continue
                elif not _env_matches(db.get("TagList"), environment):
                    continue
                endpoints.append(Endpoint(name=identifier, address=endpoint["Address"], port=int(endpoint["Port"])))
    except (ClientError, BotoCoreError) as e:
        raise DiscoveryError(f"Error listing RDS instances: {e}") from e
    return endpoints


def find_redis_endpoints(session: boto3.Session, environment: str, name: str | None = None) -> list[Endpoint]:
    """List ElastiCache replication groups tagged for ``environment``, or the one named ``name``."""
    client = session.client("elasticache")
    endpoints = []
    try:
        for page in client.get_paginator("describe_replication_groups").paginate():
            for group in page.get("ReplicationGroups", []):
                group_id = group["ReplicationGroupId"]
                node_groups = group.get("NodeGroups") or []
                if not node_groups or not node_groups[0].get("PrimaryEndpoint"):
                    continue

                if name:
                    if group_id != name:
                        continue
                else:
                    arn = group.get("ARN")
                    if not arn:
                        continue
                    try:
                        tags = client.list_tags_for_resource(ResourceName=arn).get("TagList", [])
                    except ClientError as e:
                        logger.debug("Skipping %s, cannot read tags: %s", group_id, e)
                        continue
                    if not _env_matches(tags, environment):
                        continue

                primary = node_groups[0]["PrimaryEndpoint"]
                endpoints.append(Endpoint(name=group_id, address=primary["Address"], port=int(primary["Port"])))
    except (ClientError, BotoCoreError) as e:
        raise DiscoveryError(f"Error listing Redis clusters: {e}") from e
    return endpoints


def choose_endpoint(
    endpoints: list[Endpoint],
    chooser: Callable[[list[str]], str],
    kind: str,
    environment: str,
) -> Endpoint:
    """Pick one endpoint: none is an error, one is used as-is, several go to ``chooser``."""
    if not endpoints:
        raise DiscoveryError(f"no {kind} endpoints found for environment {environment}")

    if len(endpoints) == 1:
        return endpoints[0]

    selected = chooser([endpoint.name for endpoint in endpoints])
    for endpoint in endpoints:
        if endpoint.name == selected:
            return endpoint

    raise DiscoveryError(f"unknown {kind} endpoint selected: {selected}")
