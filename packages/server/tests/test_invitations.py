"""
Tests for the collaborator inviter and its post-link background task.
"""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from app.core.errors import MissingPersonalLink, ProviderAPIError
from app.services import invitations
from app.services.invitations import NO_REPOS_REASON, member_repositories
from app.tasks.invitations import invite_after_link
from gestteam_shared.schemas.github import parse_repo_url

from conftest import bearer, link_account, make_installation, make_project, make_user


async def _user_with_repos(session, repos, *, institutional_token="gho_inst"):
    user = await make_user(session)
    await link_account(session, user, "PERSONAL", "ana-p")
    if institutional_token:
        await link_account(session, user, "INSTITUTIONAL", "ana-inst", token=institutional_token)
    for i, url in enumerate(repos):
        await make_project(session, user, title=f"p{i}", repo_url=url)
    return user


class TestRepoUrls:
    @pytest.mark.parametrize(
        "url,expected",
        [
            ("https://github.com/org/repo", ("org", "repo")),
            ("https://github.com/org/repo.git", ("org", "repo")),
            ("https://github.com/org/repo/", ("org", "repo")),
            ("git@github.com/org/repo", ("org", "repo")),
        ],
    )
    def test_parse(self, url, expected):
        ref = parse_repo_url(url)
        assert (ref.owner, ref.repo) == expected

    @pytest.mark.parametrize("url", [None, "", "https://gitlab.com/org/repo", "https://github.com/org"])
    def test_unparseable(self, url):
        assert parse_repo_url(url) is None

    @pytest.mark.asyncio
    async def test_member_repositories_skips_missing_and_foreign_urls(self, session):
        user = await make_user(session)
        await make_project(session, user, title="a", repo_url="https://github.com/o/a")
        await make_project(session, user, title="b")
        await make_project(session, user, title="c", repo_url="https://example.com/x")
        refs = await member_repositories(user.id, session)
        assert [(r.owner, r.repo) for r in refs] == [("o", "a")]


class TestInvitePersonal:
    @pytest.mark.asyncio
    async def test_one_throwing_repo_never_aborts_the_batch(self, session, github):
        user = await _user_with_repos(
            session,
            [
                "https://github.com/ana-inst/repo1",
                "https://github.com/ana-inst/repo2",
                "https://github.com/ana-inst/repo3",
            ],
        )
        github.oauth_client("gho_inst").collaborator_errors = {"repo2": RuntimeError("boom")}

        result = await invitations.invite_personal_to_project_repos(user.id, session, github)

        assert sorted(a.repo for a in result.invited) == ["repo1", "repo3"]
        assert [a.repo for a in result.failed] == ["repo2"]
        assert "boom" in result.failed[0].message
        assert all(a.via == "oauth" for a in result.invited)

    @pytest.mark.asyncio
    async def test_provider_error_is_recorded(self, session, github):
        user = await _user_with_repos(session, ["https://github.com/ana-inst/repo1"])
        github.oauth_client("gho_inst").collaborator_errors = {
            "repo1": ProviderAPIError("Must have admin rights", status=403)
        }
        result = await invitations.invite_personal_to_project_repos(user.id, session, github)
        assert result.invited == []
        assert result.failed[0].message == "oauth error: 403 Must have admin rights"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [201, 204])
    async def test_rerun_when_already_collaborating_succeeds(self, session, github, status):
        user = await _user_with_repos(
            session, ["https://github.com/ana-inst/r1", "https://github.com/ana-inst/r2"]
        )
        github.oauth_client("gho_inst").collaborator_status = status

        for _ in range(2):
            result = await invitations.invite_personal_to_project_repos(user.id, session, github)
            assert len(result.invited) == 2
            assert result.failed == []
            assert all(a.message == f"status={status}" and not a.pending for a in result.invited)

    @pytest.mark.asyncio
    async def test_pending_org_approval_is_success_flagged_pending(self, session, github):
        user = await _user_with_repos(session, ["https://github.com/ana-inst/r1"])
        github.oauth_client("gho_inst").collaborator_status = 202
        result = await invitations.invite_personal_to_project_repos(user.id, session, github)
        assert [a.pending for a in result.invited] == [True]

    @pytest.mark.asyncio
    async def test_unexpected_status_is_failure(self, session, github):
        user = await _user_with_repos(session, ["https://github.com/ana-inst/r1"])
        github.oauth_client("gho_inst").collaborator_status = 200
        result = await invitations.invite_personal_to_project_repos(user.id, session, github)
        assert result.invited == []
        assert result.failed[0].message == "oauth status=200"

    @pytest.mark.asyncio
    async def test_app_channel_only_for_its_own_account(self, session, github):
        user = await _user_with_repos(
            session,
            ["https://github.com/unifranz-org/team", "https://github.com/ana-inst/solo"],
        )
        await make_installation(session, user, account_login="unifranz-org")

        result = await invitations.invite_personal_to_project_repos(user.id, session, github)

        via = {a.repo: a.via for a in result.invited}
        assert via == {"team": "app", "solo": "oauth"}
        assert [c[2] for c in github.installation.calls] == ["team"]

    @pytest.mark.asyncio
    async def test_app_failure_falls_back_to_oauth(self, session, github):
        user = await _user_with_repos(session, ["https://github.com/unifranz-org/team"])
        await make_installation(session, user, account_login="unifranz-org")
        github.installation.collaborator_errors = {
            "team": ProviderAPIError("Resource not accessible by integration", status=403)
        }

        result = await invitations.invite_personal_to_project_repos(user.id, session, github)

        assert [(a.repo, a.via) for a in result.invited] == [("team", "oauth")]

    @pytest.mark.asyncio
    async def test_malformed_app_token_response_falls_back_to_oauth(self, session, github):
        user = await _user_with_repos(session, ["https://github.com/unifranz-org/team"])
        await make_installation(session, user, account_login="unifranz-org")
        github.installation_client = AsyncMock(side_effect=KeyError("token"))

        result = await invitations.invite_personal_to_project_repos(user.id, session, github)

        assert [(a.repo, a.via) for a in result.invited] == [("team", "oauth")]
        assert result.failed == []

    @pytest.mark.asyncio
    async def test_all_channels_failing_joins_messages(self, session, github):
        user = await _user_with_repos(session, ["https://github.com/unifranz-org/team"])
        await make_installation(session, user, account_login="unifranz-org")
        github.installation.collaborator_errors = {"team": ProviderAPIError("nope", status=403)}
        github.oauth_client("gho_inst").collaborator_errors = {"team": ProviderAPIError("no", status=404)}

        result = await invitations.invite_personal_to_project_repos(user.id, session, github)

        assert result.failed[0].message == "app error: 403 nope | oauth error: 404 no"

    @pytest.mark.asyncio
    async def test_no_usable_credential(self, session, github):
        user = await _user_with_repos(
            session, ["https://github.com/ana-inst/r1"], institutional_token=None
        )
        result = await invitations.invite_personal_to_project_repos(user.id, session, github)
        assert result.invited == []
        assert result.failed[0].message == "no credential can invite on this repository"

    @pytest.mark.asyncio
    async def test_requires_personal_link(self, session, github):
        user = await make_user(session)
        with pytest.raises(MissingPersonalLink):
            await invitations.invite_personal_to_project_repos(user.id, session, github)

    @pytest.mark.asyncio
    async def test_no_repositories(self, session, github):
        user = await _user_with_repos(session, [])
        result = await invitations.invite_personal_to_project_repos(user.id, session, github)
        assert result.reason == NO_REPOS_REASON
        assert result.invited == [] and result.failed == []


class TestInviteAfterLink:
    @pytest.mark.asyncio
    async def test_runs_in_its_own_session(self, session, github):
        user = await _user_with_repos(session, ["https://github.com/ana-inst/r1"])
        await session.commit()

        result = await invite_after_link(user.id, github)

        assert [a.repo for a in result.invited] == ["r1"]

    @pytest.mark.asyncio
    async def test_missing_personal_link_is_skipped(self, session, github):
        user = await make_user(session)
        await session.commit()
        assert await invite_after_link(user.id, github) is None

    @pytest.mark.asyncio
    async def test_unexpected_failure_is_contained(self, session, github, monkeypatch):
        user = await make_user(session)
        await session.commit()

        async def explode(*args, **kwargs):
            raise RuntimeError("db down")

        monkeypatch.setattr("app.tasks.invitations.invite_personal_to_project_repos", explode)
        assert await invite_after_link(user.id, github) is None


class TestInviteEndpoints:
    @pytest.mark.asyncio
    async def test_missing_personal_link_is_ok_false(self, client, session):
        user = await make_user(session)
        await session.commit()
        resp = await client.post("/github/me/invite-personal-on-all", headers=bearer(user))
        assert resp.status_code == 200
        assert resp.json() == {
            "ok": False,
            "invited": [],
            "failed": [],
            "error": "Link your PERSONAL GitHub account first",
        }

    @pytest.mark.asyncio
    async def test_retry_invites(self, client, session, github):
        user = await _user_with_repos(session, ["https://github.com/ana-inst/r1"])
        await session.commit()

        resp = await client.post("/github/me/retry-invites", headers=bearer(user))
        body = resp.json()
        assert body["ok"] is True
        assert body["invited"][0]["repo"] == "r1"
        assert body["failed"] == []
