"""Headings: decorative prefix/label/tail marker spans"""

from bs4 import BeautifulSoup

from one2mp.core.render.extension import RendererExtension


class HeadingExtension(RendererExtension):
    name = "heading"

    async def postprocess(self, html, session):
        soup = BeautifulSoup(html, "html.parser")
        headings = soup.find_all(["h1", "h2", "h3", "h4", "h5", "h6"])
        if not headings:
            return html
        for h in headings:
            leaf = soup.new_tag("span", attrs={"class": "one2mp-heading-leaf"})
            for child in list(h.contents):
                leaf.append(child.extract())
            outbox = soup.new_tag("span", attrs={"class": "one2mp-heading-outbox"})
            outbox.append(leaf)
            prefix = soup.new_tag("span", attrs={"class": "one2mp-heading-prefix"})
            prefix.string = " "
            h.append(prefix)
            h.append(outbox)
            h.append(soup.new_tag("span", attrs={"class": "one2mp-heading-tail"}))
        return str(soup)
