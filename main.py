#!/usr/bin/env python3
"""
LabourLink command line client

Usage:
    python main.py jobs --status open --skills plumbing,tiling
    python main.py --name Ann --email ann@example.com job <job-id>
    python main.py --name ... --email ... post-job --title "Fix tap" --description ... --location Leeds --budget 80
    python main.py --name ... --email ... edit-job <job-id> --budget 95
    python main.py --name ... --email ... my-jobs
    python main.py --name ... --email ... profile --bio "Gas safe plumber" --skills plumbing,heating
    python main.py --name ... --email ... offer <job-id> --price 120 --message "Can start Monday"
    python main.py --name ... --email ... accept-offer <job-id> <offer-id>
    python main.py --name ... --email ... approve-close <job-id>
    python main.py --name ... --email ... notifications
    python main.py estimate --description "Fix leaking tap" --image tap.jpg
"""
import argparse
import asyncio
import sys
from pathlib import Path
from typing import Optional

import httpx
from pydantic import ValidationError

from labourlink.config import AppConfig, load_config, get_config
from labourlink.errors import MarketplaceError
from labourlink.estimator import PriceEstimator
from labourlink.filters import FilterState, JobFilters, to_query_string
from labourlink.logger import setup_logging, get_logger
from labourlink.models import Job, JobDraft, JobUpdate, OfferDraft, Role, User, UserUpdate
from labourlink.service import MarketplaceService

# Commands that act on one job as the signed-in user
JOB_TRANSITIONS = {
    "request-close": "request_close",
    "approve-close": "approve_close",
    "close": "close",
    "reject-close": "reject_close",
    "delete": "delete",
}

# Flag dest -> JobDraft/JobUpdate field
JOB_FIELDS = ("title", "description", "location", "budget", "latitude", "longitude")

# Flag dest -> UserUpdate field
PROFILE_FIELDS = {
    "location": "location",
    "bio": "bio",
    "years": "years_of_experience",
    "company": "company_name",
    "avatar_url": "avatar_url",
}


def format_job(job: Job) -> str:
    line = f"[{job.status.value:<8}] {job.id}  {job.title}  ${job.budget:,.2f}  {job.location}"
    if job.has_close_request:
        line += "  (close requested)"
    return line


def format_profile(user: User) -> list[str]:
    lines = [f"{user.name} <{user.email}>  {user.role.value}  {user.id}"]
    if user.location:
        lines.append(f"Location: {user.location}")
    if user.bio:
        lines.append(f"Bio: {user.bio}")
    if user.role == Role.LABOUR:
        lines.append(f"Skills: {', '.join(user.skills) or '-'}")
        if user.years_of_experience is not None:
            lines.append(f"Experience: {user.years_of_experience} years")
    elif user.company_name:
        lines.append(f"Company: {user.company_name}")
    missing = user.missing_profile_fields()
    if missing:
        lines.append("Profile incomplete, missing: " + ", ".join(missing))
    return lines


def _split_skills(raw: str) -> list[str]:
    return [s.strip() for s in raw.split(",") if s.strip()]


def _add_job_fields(parser: argparse.ArgumentParser, required: bool):
    parser.add_argument("--title", required=required)
    parser.add_argument("--description", required=required)
    parser.add_argument("--location", required=required)
    parser.add_argument("--budget", type=float, required=required)
    parser.add_argument("--latitude", type=float)
    parser.add_argument("--longitude", type=float)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="LabourLink marketplace client",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--config", help="Path to config.yaml")
    parser.add_argument("--name", help="Sign in with this name")
    parser.add_argument("--email", help="Sign in with this email")

    sub = parser.add_subparsers(dest="command", required=True)

    jobs = sub.add_parser("jobs", help="List jobs")
    jobs.add_argument("--query", default="", help="Raw filter query string, e.g. 'status=open&skills=a,b'")
    jobs.add_argument("--min-budget", type=float)
    jobs.add_argument("--max-budget", type=float)
    jobs.add_argument("--q", help="Free-text search")
    jobs.add_argument("--location")
    jobs.add_argument("--skills", help="Comma-separated skill tags")
    jobs.add_argument("--status", choices=["all", "open", "reserved", "closed"])
    jobs.add_argument("--map", action="store_true", help="Only jobs with coordinates")

    job = sub.add_parser("job", help="Show a job, its offers and what you may do")
    job.add_argument("job_id")

    post = sub.add_parser("post-job", help="Post a new job")
    _add_job_fields(post, required=True)
    post.add_argument("--image", type=Path, action="append", default=[], help="Photo to upload (repeatable)")
    post.add_argument("--video", type=Path, help="Video to upload")

    edit = sub.add_parser("edit-job", help="Edit one of your jobs")
    edit.add_argument("job_id")
    _add_job_fields(edit, required=False)

    sub.add_parser("my-jobs", help="Jobs you created and jobs you are working on")

    profile = sub.add_parser("profile", help="Show or edit your profile")
    profile.add_argument("--location")
    profile.add_argument("--bio")
    profile.add_argument("--skills", help="Comma-separated skill tags")
    profile.add_argument("--years", type=int, help="Years of experience")
    profile.add_argument("--company", help="Company name")
    profile.add_argument("--avatar-url")

    signup = sub.add_parser("sign-up", help="Create an account")
    signup.add_argument("--role", choices=[r.value for r in Role], required=True)

    offer = sub.add_parser("offer", help="Make an offer on a job")
    offer.add_argument("job_id")
    offer.add_argument("--price", type=float, required=True)
    offer.add_argument("--message", required=True)

    for command in ("accept-offer", "reject-offer"):
        p = sub.add_parser(command, help=f"{command.split('-')[0].capitalize()} an offer")
        p.add_argument("job_id")
        p.add_argument("offer_id")

    for command in JOB_TRANSITIONS:
        p = sub.add_parser(command, help=f"{command.replace('-', ' ').capitalize()} a job")
        p.add_argument("job_id")

    notes = sub.add_parser("notifications", help="Show your notifications")
    notes.add_argument("--mark-read", metavar="ID", help="Mark one notification as read")

    estimate = sub.add_parser("estimate", help="Estimate a job price from a description and photo")
    estimate.add_argument("--description", required=True)
    estimate.add_argument("--image", type=Path, required=True)

    sub.add_parser("status", help="Show configuration and session status")

    return parser


def filters_from_args(args) -> JobFilters:
    """Raw --query first, then individual flags on top"""
    state = FilterState(args.query)
    updates = {}
    if args.min_budget is not None:
        updates["min_budget"] = args.min_budget
    if args.max_budget is not None:
        updates["max_budget"] = args.max_budget
    if args.q:
        updates["q"] = args.q
    if args.location:
        updates["location"] = args.location
    if args.skills:
        updates["skills"] = _split_skills(args.skills)
    if args.status:
        updates["status"] = args.status
    if updates:
        try:
            filters = JobFilters.model_validate({**state.filters.model_dump(), **updates})
        except ValidationError as e:
            raise MarketplaceError(f"Invalid filters: {e.errors()[0]['msg']}") from e
        state.set_filters(filters)
    return state.filters


def job_fields_from_args(args) -> dict:
    return {name: getattr(args, name) for name in JOB_FIELDS if getattr(args, name) is not None}


def profile_update_from_args(args) -> Optional[UserUpdate]:
    """The requested profile changes, or None when no flag was given"""
    fields = {field: getattr(args, dest) for dest, field in PROFILE_FIELDS.items() if getattr(args, dest) is not None}
    if args.skills is not None:
        fields["skills"] = _split_skills(args.skills)
    if not fields:
        return None
    return UserUpdate(**fields)


async def run(args, config: AppConfig, transport: Optional[httpx.AsyncBaseTransport] = None) -> int:
    logger = get_logger()

    if args.command == "estimate":
        estimator = PriceEstimator(config)
        price = await estimator.estimate_price(args.description, args.image)
        print(f"Estimated price: ${price:,.2f}")
        return 0

    async with MarketplaceService(config, transport=transport) as service:
        if args.command == "sign-up":
            session = await service.sign_up(args.name or "", args.email or "", Role(args.role), poll=False)
            print(f"Created {session.role.value} account {session.actor_id}")
            return 0

        if args.name and args.email:
            await service.sign_in(args.name, args.email, poll=False)

        if args.command == "status":
            for key, value in service.get_status().items():
                print(f"{key}: {value}")
            return 0

        if args.command == "jobs":
            filters = filters_from_args(args)
            logger.info(f"Listing jobs with filters: {to_query_string(filters) or '(none)'}")
            if args.map:
                jobs = await service.client.list_map_jobs(filters)
            else:
                jobs = await service.client.list_jobs(filters)
            for job in jobs:
                print(format_job(job))
            print(f"{len(jobs)} job(s)")
            return 0

        if args.command == "post-job":
            draft = JobDraft(**job_fields_from_args(args))
            job = await service.post_job(draft, images=tuple(args.image), video=args.video)
            print(f"Posted job {job.id}")
            print(format_job(job))
            return 0

        if args.command == "my-jobs":
            jobs = await service.my_jobs()
            for heading, listed in (("Jobs I created", jobs.created), ("Jobs I'm working on", jobs.working_on)):
                print(f"{heading} ({len(listed)}):")
                for job in listed:
                    print("  " + format_job(job))
            return 0

        if args.command == "profile":
            update = profile_update_from_args(args)
            user = await service.update_profile(update) if update else service.profile()
            for line in format_profile(user):
                print(line)
            return 0

        if args.command == "notifications":
            if service.feed is None:
                logger.error("Sign in with --name and --email to see notifications")
                return 1
            await service.feed.refresh()
            if service.feed.error:
                logger.error(f"Could not load notifications: {service.feed.error}")
                return 1
            if args.mark_read:
                await service.feed.mark_as_read(args.mark_read)
            for n in service.feed.notifications:
                marker = " " if n.read else "*"
                print(f"{marker} {n.id}  {n.created_at:%Y-%m-%d %H:%M}  {n.message}")
            print(f"{service.feed.unread_count} unread")
            return 0

        if args.command == "edit-job":
            fields = job_fields_from_args(args)
            if not fields:
                logger.error("Nothing to change; pass at least one of " + ", ".join(f"--{f}" for f in JOB_FIELDS))
                return 1

        detail = await service.job_detail(args.job_id)

        if args.command == "offer":
            await detail.submit_offer(OfferDraft(proposed_price=args.price, message=args.message))
        elif args.command == "edit-job":
            await detail.update(JobUpdate(**fields))
        elif args.command == "accept-offer":
            await detail.accept_offer(args.offer_id)
        elif args.command == "reject-offer":
            await detail.reject_offer(args.offer_id)
        elif args.command in JOB_TRANSITIONS:
            await getattr(detail, JOB_TRANSITIONS[args.command])()

        if detail.deleted:
            print(f"Deleted job {args.job_id}")
            return 0

        print(format_job(detail.job))
        for offer in detail.offers:
            print(f"  offer {offer.id}  ${offer.proposed_price:,.2f}  {offer.status.value}  {offer.message}")
        actions = detail.actions()
        print("You may: " + (", ".join(sorted(a.value for a in actions.job)) or "nothing"))
        return 0


def main():
    """Main entry point"""
    args = build_parser().parse_args()

    config = get_config() if args.config is None else load_config(args.config)
    setup_logging(config)
    logger = get_logger()

    try:
        code = asyncio.run(run(args, config))
    except MarketplaceError as e:
        logger.error(str(e))
        code = 1
    except ValidationError as e:
        logger.error(f"Invalid input: {e}")
        code = 1
    sys.exit(code)


if __name__ == "__main__":
    main()
