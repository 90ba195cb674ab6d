# CUI // SP-PROPIN
