"""
System-curated trusted domains.

Major international services plus Indonesian banks, fintech, e-commerce,
government, media, telco and education sites. A host is trusted when it
equals a listed domain or is a subdomain of one; every ``.go.id`` and
``.ac.id`` host is trusted as well.
"""
from typing import FrozenSet

GLOBAL_TECH = (
    'google.com', 'youtube.com', 'gmail.com', 'android.com',
    'facebook.com', 'instagram.com', 'whatsapp.com', 'messenger.com',
    'twitter.com', 'x.com', 't.co',
    'linkedin.com', 'microsoft.com', 'live.com', 'office.com', 'bing.com',
    'apple.com', 'icloud.com', 'itunes.com',
    'amazon.com', 'aws.amazon.com',
    'netflix.com', 'spotify.com', 'twitch.tv',
    'github.com', 'gitlab.com', 'stackoverflow.com',
    'zoom.us', 'slack.com', 'atlassian.com', 'trello.com',
    'dropbox.com', 'wetransfer.com',
    'paypal.com', 'wise.com',
    'wikipedia.org', 'reddit.com', 'medium.com',
    'adobe.com', 'figma.com', 'canva.com',
    'salesforce.com', 'oracle.com', 'ibm.com',
    'cloudflare.com',
)

INDONESIA_BANKS = (
    'bankmandiri.co.id', 'bankmandiri.com', 'livin.id',
    'bri.co.id', 'bni.co.id', 'bca.co.id', 'klikbca.com',
    'cimbniaga.co.id', 'octoclicks.co.id',
    'danamon.co.id', 'danamonline.com',
    'maybank.co.id', 'permatabank.com',
    'btpn.com', 'jenius.com', 'btn.co.id',
    'bsi.co.id', 'bankbsi.co.id', 'bankmega.com',
    'panin.co.id', 'ocbcnisp.com', 'uob.co.id',
    'shinhan.co.id', 'commonwealth.co.id',
    'bi.go.id', 'ojk.go.id', 'lps.go.id',
)

INDONESIA_FINTECH = (
    'gopay.co.id', 'gojek.com', 'ovo.id', 'dana.id', 'linkaja.id',
    'shopeepay.co.id', 'dokupay.com', 'flip.id',
    'investree.id', 'koinworks.com', 'modalku.co.id',
    'bibit.id', 'ajaib.co.id', 'bareksa.com',
)

INDONESIA_ECOMMERCE = (
    'tokopedia.com', 'shopee.co.id', 'bukalapak.com', 'lazada.co.id',
    'blibli.com', 'zalora.co.id', 'sociolla.com',
    'tiket.com', 'traveloka.com', 'pegipegi.com', 'agoda.com', 'booking.com',
    'halodoc.com', 'alodokter.com', 'ruangguru.com', 'zenius.net',
)

INDONESIA_GOV = (
    'go.id', 'kemkes.go.id', 'kemdikbud.go.id', 'kemenkeu.go.id',
    'pajak.go.id', 'dukcapil.kemendagri.go.id',
    'bpjs-kesehatan.go.id', 'bpjsketenagakerjaan.go.id',
    'pln.co.id', 'telkom.co.id', 'indihome.co.id', 'pertamina.com',
    'posindonesia.co.id', 'kai.id', 'garuda-indonesia.com',
    'lionair.co.id', 'citilink.co.id', 'batikair.com',
    'pelni.co.id', 'damri.co.id', 'pedulilindungi.id',
)

INDONESIA_MEDIA = (
    'kompas.com', 'kompas.id', 'detik.com', 'cnnindonesia.com',
    'cnbcindonesia.com', 'tribunnews.com', 'liputan6.com', 'merdeka.com',
    'viva.co.id', 'suara.com', 'kumparan.com', 'idntimes.com', 'tempo.co',
    'republika.co.id', 'antaranews.com', 'jawapos.com', 'bisnis.com',
    'katadata.co.id',
)

INDONESIA_TELCO = (
    'telkomsel.com', 'indosatooredoo.com', 'im3.id', 'xl.co.id',
    'axis.co.id', 'smartfren.com', 'tri.co.id', 'biznetnetworks.com',
    'firstmedia.com', 'myrepublic.co.id',
)

INDONESIA_EDU = (
    'ac.id', 'ui.ac.id', 'ugm.ac.id', 'itb.ac.id', 'ipb.ac.id',
    'unpad.ac.id', 'its.ac.id', 'undip.ac.id', 'unair.ac.id',
    'ub.ac.id', 'binus.ac.id',
)

TRUSTED_DOMAINS: FrozenSet[str] = frozenset(
    GLOBAL_TECH + INDONESIA_BANKS + INDONESIA_FINTECH + INDONESIA_ECOMMERCE
    + INDONESIA_GOV + INDONESIA_MEDIA + INDONESIA_TELCO + INDONESIA_EDU
)


def find_listed_parent(host: str, domains: FrozenSet[str]):
    """Return the listed domain equal to ``host`` or its closest listed ancestor"""
    parts = host.lower().split('.')
    for i in range(len(parts)):
        candidate = '.'.join(parts[i:])
        if candidate in domains:
            return candidate
    return None


def is_trusted_domain(host: str) -> bool:
    return find_listed_parent(host, TRUSTED_DOMAINS) is not None
