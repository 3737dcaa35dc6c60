import typer

app = typer.Typer()


@app.command()
def offers(event_id: int, lang: str = "es", quantity: int = 1):
    import asyncio

    from core.dame_service import DameTicketsService
    from core.helper import get_current_time_in_timezone, resolve_locale
    from core.offer_resolver import format_amount, resolve_offers, total_price

    locale = resolve_locale(lang)
    now = get_current_time_in_timezone()
    page = asyncio.run(DameTicketsService().get_ticket_types(event_id))
    summary = resolve_offers(page.results, now, locale)
    totals = {
        offer.id: format_amount(total_price(offer, quantity, now)) for offer in page.results
    }

    print(f"Orderable offers: {summary.has_orderable_offers}")
    print(f"From: {summary.min_display_price or '-'}")
    print(f"At-door offer: {summary.at_door_offer_id or '-'}")
    for offer in summary.offers:
        max_quantity = "unlimited" if offer.max_quantity is None else offer.max_quantity
        print(
            f"[{offer.id}] {offer.channel.value} {offer.title}: {offer.price_label} "
            f"x{quantity}={totals[offer.id]} "
            f"orderable={offer.is_orderable} max={max_quantity}"
        )
        if offer.description:
            print(f"    {offer.description}")


@app.command()
def ticket_status(ticket_code: str):
    import asyncio

    from core.dame_service import DameTicketsService

    result = asyncio.run(DameTicketsService().get_ticket_status(ticket_code))
    if not result.success or result.ticket is None:
        print(result.error or "Ticket not found")
        raise typer.Exit(code=1)

    ticket = result.ticket
    print(f"{ticket.ticket_code} {ticket.status.value} {ticket.full_name}")
    print(f"{ticket.event_title} {ticket.event_date or ''}")


@app.command()
def my_tickets(
    token: str = typer.Option(..., prompt=True, hide_input=True), past: bool = False
):
    import asyncio

    from core.dame_service import DameTicketsService

    async def collect():
        tickets = []
        scope = "past" if past else "current"
        async for page in DameTicketsService().iter_my_tickets(token=token, scope=scope):
            tickets.extend(page.results)
        return tickets

    for ticket in asyncio.run(collect()):
        print(
            f"{ticket.ticket_code} {ticket.lifecycle.value} "
            f"{ticket.event_title} ({ticket.event_date or '-'}) {ticket.full_name}"
        )


if __name__ == "__main__":
    app()
